"""
mqtt-levels CLI - Command-line interface for the leveled publisher.

Publishes a single message without writing Python.

Usage:
    mqtt-levels info "service started"
    mqtt-levels --env prod error "disk full" --qos 1
    mqtt-levels --config publisher.yaml usage "42 requests"
"""

__version__ = "1.0.0"
