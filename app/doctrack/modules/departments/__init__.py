"""Departments: routing targets for documents."""
