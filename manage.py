#!/usr/bin/env python3
"""Django management entry point for the helpdesk service."""
import os
import sys


def main() -> None:
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "helpdesk_service.settings")
    from django.core.management import execute_from_command_line
    from django.core.management.commands.runserver import Command as runserver

    runserver.default_port = os.environ.get("PORT", "5000")
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
