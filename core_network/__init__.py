# File location: nssf/core_network/__init__.py
# NSSF service entry point and persistence layer
