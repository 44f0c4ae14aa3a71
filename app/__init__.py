"""
WriterDown -- host-facing services around the extraction engine.

Package layout:
    services/   Event bus and the debounced refresh service (PySide6)
    paths.py    User-level settings location
    main.py     Command-line entry point
"""
