"""
Entry point for running q-config-backup as a module.

Usage:
    python -m q_config_backup [options] <command>
"""

from q_config_backup.cli import main

if __name__ == "__main__":
    main()
