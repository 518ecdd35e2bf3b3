# tablegate/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'default_db_type': 'mysql',
    'staging_prefix': 'temp',        # staging tables are named <prefix>_<table>_<token>
    'upsert_alias': 'new',           # row alias for MySQL 8.0.19+ upserts
    'max_placeholders': 65535,       # MySQL prepared statement limit
    'identifier_max_length': 64,
    'logging': {
        'directory': './logs',
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'split_errors': True,
        'console': True,
        'retention_days': 30,
    }
}
