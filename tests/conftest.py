"""
Test configuration and fixtures for workflow-api tests.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from workflow_api.main import app
from workflow_api.db.database import make_engine
from workflow_api.db.init_db import create_tables
from workflow_api.dependencies import get_store
from workflow_api.domain.events import event_publisher
from workflow_api.domain.graph import Edge, Node, Position, WorkflowGraph
from workflow_api.domain.registry import get_node_registry
from workflow_api.domain.validation import GraphValidator
from workflow_api.storage.database import SqlWorkflowStore
from workflow_api.storage.filesystem import FilesystemWorkflowStore


@pytest.fixture(autouse=True)
def clean_event_subscribers():
    """Keep event subscriptions from leaking between tests."""
    event_publisher.clear_subscribers()
    yield
    event_publisher.clear_subscribers()


@pytest.fixture
def registry():
    return get_node_registry()


@pytest.fixture
def validator(registry):
    return GraphValidator(registry)


@pytest.fixture
def fs_store(tmp_path):
    """Filesystem store in a per-test directory."""
    return FilesystemWorkflowStore(base_dir=str(tmp_path / "workflows"))


@pytest.fixture
def sql_store(tmp_path):
    """SQL store on a per-test SQLite file."""
    engine = make_engine(f"sqlite:///{tmp_path / 'workflows.db'}")
    create_tables(engine)
    yield SqlWorkflowStore(session_factory=sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


@pytest.fixture(params=["filesystem", "database"])
def store(request):
    """Run a test against every store implementation."""
    fixture_name = "fs_store" if request.param == "filesystem" else "sql_store"
    return request.getfixturevalue(fixture_name)


@pytest.fixture
def client(fs_store):
    """Create test client backed by a temporary filesystem store."""
    app.dependency_overrides[get_store] = lambda: fs_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def navigate_node(node_id="n1", url="https://example.com", **extra):
    data = {"label": "Open page", "url": url}
    data.update(extra)
    return Node(id=node_id, type="navigate", position=Position(x=0, y=0), data=data)


def extract_node(node_id="n2", selector="h1", name="title", **extra):
    data = {"label": "Read title", "extractions": [{"name": name, "selector": selector}]}
    data.update(extra)
    return Node(id=node_id, type="extract", position=Position(x=200, y=0), data=data)


@pytest.fixture
def happy_graph():
    """navigate(n1) -> extract(n2), where n2 reads n1's title through an expression."""
    return WorkflowGraph(
        nodes=[navigate_node(), extract_node(selector="{{$input.n1.title}}")],
        edges=[Edge(id="e1", source="n1", target="n2")],
        variables={},
        version=0,
    )


@pytest.fixture
def looping_graph():
    """trigger -> navigate -> loop, loop body extracts each item, done branch waits."""
    return WorkflowGraph(
        nodes=[
            Node(id="start", type="trigger", data={"label": "Start", "type": "manual"}),
            navigate_node("open", url="{{$vars.baseUrl}}/products"),
            Node(id="each", type="loop", data={"items": "{{$input.open.url}}", "maxIterations": 10}),
            Node(id="read", type="extract", data={
                "extractions": [{"name": "price", "selector": "{{$item.selector}}"}],
            }),
            Node(id="pause", type="wait", data={"duration": 1, "unit": "s"}),
        ],
        edges=[
            Edge(id="e1", source="start", target="open"),
            Edge(id="e2", source="open", target="each"),
            Edge(id="e3", source="each", target="read", source_handle="loop"),
            Edge(id="e4", source="each", target="pause", source_handle="done"),
        ],
        variables={"baseUrl": "https://shop.example.com"},
        version=0,
    )
