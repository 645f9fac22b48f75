"""
Constants and default configuration for Stratforecast.
"""

CONFIG_FILES = [
    '.stratforecast.yaml',
    '.stratforecast.yml',
    '.stratforecast.toml',
    '.stratforecast.json',
]

DEFAULT_CONFIG = {
    'prediction': {
        'default_owner_performance': 0.7,
        'similar_operations_limit': 5,
        'default_velocity': 2.0,
        'min_velocity': 0.5,
    },
    'analytics': {
        'upcoming_window_days': 7,
        'risk_window_days': 30,
        'trend_months': 6,
        'overallocation_threshold': 5,
        'delayed_ratio_threshold': 0.3,
        'critical_list_size': 5,
    },
    'logging': {
        'level': 'INFO',
    },
}
