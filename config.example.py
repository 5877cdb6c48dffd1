# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Every key has a default, so a fresh checkout runs with no configuration at all.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "STUDY_APP_NAME": "App display name (default: study-tracker).",
    "STUDY_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Console front end
    "STUDY_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "STUDY_CONSOLE_USER": "Username to act as when the console starts (default: logged out).",
    # Calendar
    "STUDY_TIMEZONE": "IANA zone that decides where 'today' starts and ends (default: UTC).",
    # Paths (gitignored)
    "STUDY_DATA_DIR": "Local data directory, also holds study.log (default: .local/study).",
    "STUDY_DB_PATH": "SQLite database path (default: <data_dir>/study.sqlite3).",
}
