"""
workflow-api Application Package

Directory Structure:
├── domain/            # Graph model, node registry, expressions, validator
│   ├── node_types.py  # One closed configuration shape per node type
│   ├── registry.py    # Node type catalog (defaults, outputs, handles)
│   ├── expressions.py # {{$input/$vars/$item}} parsing and resolution
│   ├── graph.py       # WorkflowGraph aggregate and JSON wire format
│   └── validation.py  # Ordered structural and semantic checks
├── application/       # Use cases (save pipeline, graph edits) and event handlers
├── storage/           # Workflow stores with optimistic concurrency
│   ├── filesystem.py  # One JSON document per workflow
│   └── database.py    # SQLAlchemy table
├── routers/           # FastAPI route handlers
├── schemas/           # Pydantic models for API requests/responses
└── config.py          # Application configuration

The API stores and validates workflow graphs. Executing them (driving a
browser, resolving expressions against live data) is the job of a
separate executor that consumes the same graph format.
"""
