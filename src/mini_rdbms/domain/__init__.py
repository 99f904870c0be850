"""Domain layer - schema model, record format and engine errors.

The domain layer has no knowledge of files, threads or command text:
    - entities: column/table/row definitions and the record codec
    - value_objects: identifiers and storage naming rules
    - services: concurrency primitives shared by storage adapters
    - errors: the recoverable error hierarchy
"""
