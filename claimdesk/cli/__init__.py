"""Command-line entry points"""
