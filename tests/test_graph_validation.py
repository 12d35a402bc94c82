"""Tests for the graph validator."""
from __future__ import annotations

from workflow_api.domain.graph import Edge, Node, WorkflowGraph
from workflow_api.domain.validation import MAX_WORKFLOW_DEPTH, IssueCode, Severity, has_errors, split_issues


def codes(issues):
    return [issue.code for issue in issues]


def trigger(node_id="start"):
    return Node(id=node_id, type="trigger", data={"type": "manual"})


def navigate(node_id, url="https://example.com", **extra):
    return Node(id=node_id, type="navigate", data={"url": url, **extra})


def wait(node_id):
    return Node(id=node_id, type="wait", data={"duration": 1})


class TestScenarios:
    """Test the reference scenarios."""

    def test_happy_path_is_clean(self, validator, happy_graph):
        """Test navigate -> extract reading the page title has no issues."""
        assert validator.validate(happy_graph) == []

    def test_dangling_target_is_one_error(self, validator, happy_graph):
        """Test an edge to a missing node is reported once, addressed by edge."""
        happy_graph.edges.append(Edge(id="e-ghost", source="n1", target="ghost"))

        issues = validator.validate(happy_graph)

        assert len(issues) == 1
        issue = issues[0]
        assert issue.severity == Severity.ERROR
        assert issue.code == IssueCode.DANGLING_EDGE
        assert issue.edge_id == "e-ghost"
        assert "ghost" in issue.message

    def test_validation_is_idempotent(self, validator, happy_graph):
        """Test repeated validation returns the same ordered list."""
        happy_graph.nodes.append(Node(id="n3", type="click", data={"selector": "{{$input.nowhere.x}}", "bogus": 1}))
        happy_graph.edges.append(Edge(id="e-ghost", source="ghost", target="n2"))
        before = happy_graph.model_copy(deep=True)

        first = validator.validate(happy_graph)
        second = validator.validate(happy_graph)

        assert first == second
        assert len(first) > 2
        assert happy_graph == before

    def test_loop_workflow_is_clean(self, validator, looping_graph):
        """Test a trigger/loop workflow with $item inside the loop body."""
        assert validator.validate(looping_graph) == []


class TestStructure:
    """Test phase 1 checks."""

    def test_duplicate_ids(self, validator):
        """Test duplicate node and edge ids."""
        graph = WorkflowGraph(
            nodes=[trigger(), wait("a"), wait("a")],
            edges=[Edge(id="e", source="start", target="a"), Edge(id="e", source="start", target="a",
                                                                   target_handle="input")],
        )
        issues = validator.validate(graph)
        assert IssueCode.DUPLICATE_NODE_ID in codes(issues)
        assert IssueCode.DUPLICATE_EDGE_ID in codes(issues)
        # None and "input" name the same default handle
        assert IssueCode.DUPLICATE_CONNECTION in codes(issues)

    def test_self_loop(self, validator):
        """Test self-loop edges are errors."""
        graph = WorkflowGraph(nodes=[trigger(), wait("a")],
                              edges=[Edge(id="s", source="start", target="a"), Edge(id="x", source="a", target="a")])
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.SELF_LOOP]
        assert issues[0].edge_id == "x"

    def test_unknown_handles(self, validator):
        """Test handles must exist on the connected nodes."""
        graph = WorkflowGraph(
            nodes=[trigger(), Node(id="if", type="condition", data={"conditions": [
                {"variable": "{{$vars.mode}}", "operator": "exists"}]}), wait("a"), wait("b")],
            edges=[
                Edge(id="e0", source="start", target="if"),
                Edge(id="e1", source="if", target="a", source_handle="maybe"),
                Edge(id="e2", source="if", target="b"),
            ],
            variables={"mode": "fast"},
        )
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.UNKNOWN_HANDLE, IssueCode.UNKNOWN_HANDLE]
        assert [i.edge_id for i in issues] == ["e1", "e2"]

    def test_incoming_edge_into_trigger(self, validator):
        """Test triggers cannot be connected into."""
        graph = WorkflowGraph(nodes=[trigger(), navigate("a")],
                              edges=[Edge(id="e1", source="start", target="a"),
                                     Edge(id="e2", source="a", target="start")])
        issues = validator.validate(graph)
        assert codes(issues)[0] == IssueCode.TRIGGER_INPUT
        assert issues[0].node_id == "start"

    def test_structural_errors_come_first(self, validator):
        """Test issues are ordered by phase."""
        graph = WorkflowGraph(
            nodes=[trigger(), Node(id="a", type="click", data={"selector": "{{oops"}), wait("orphan")],
            edges=[Edge(id="e1", source="start", target="a"), Edge(id="e2", source="a", target="nowhere")],
        )
        assert codes(validator.validate(graph)) == [
            IssueCode.DANGLING_EDGE,
            IssueCode.INVALID_EXPRESSION,
            IssueCode.UNREACHABLE_NODE,
        ]


class TestShape:
    """Test phase 2 checks."""

    def test_shape_errors_are_field_addressed(self, validator):
        """Test every violation becomes an error naming node and field."""
        graph = WorkflowGraph(nodes=[trigger(), Node(id="x", type="extract", data={
            "extractions": [{"name": "a"}], "color": "red"})],
            edges=[Edge(id="e", source="start", target="x")])
        issues = validator.validate(graph)
        assert {(i.code, i.field) for i in issues} == {
            (IssueCode.MISSING_FIELD, "extractions.0.selector"),
            (IssueCode.UNKNOWN_FIELD, "color"),
        }
        assert all(i.node_id == "x" and i.is_error for i in issues)

    def test_blank_required_value_is_warning(self, validator):
        """Test a fresh node with an empty URL does not block saving."""
        graph = WorkflowGraph(nodes=[trigger(), navigate("a", url="")],
                              edges=[Edge(id="e", source="start", target="a")])
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.INCOMPLETE_CONFIG]
        assert not has_errors(issues)


class TestExpressions:
    """Test phases 3 and 4."""

    def test_invalid_syntax_is_error(self, validator):
        """Test malformed references block saving."""
        graph = WorkflowGraph(nodes=[trigger(), navigate("a", url="https://x/{{$vars.id")],
                              edges=[Edge(id="e", source="start", target="a")])
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.INVALID_EXPRESSION]
        assert issues[0].field == "url"
        assert issues[0].is_error

    def test_literal_closing_braces_in_json_body(self, validator):
        """Test a JSON body ending in ``}}`` is flagged even around a valid reference."""
        request = Node(id="call", type="httpRequest",
                       data={"url": "https://api.example.com", "method": "POST",
                             "body": '{"user": {"id": "{{$vars.id}}"}}'})
        graph = WorkflowGraph(nodes=[trigger(), request], edges=[Edge(id="e", source="start", target="call")],
                              variables={"id": 7})
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.INVALID_EXPRESSION]
        assert issues[0].field == "body"
        assert issues[0].is_error

        request.data["body"] = '{"user": {"id": "{{$vars.id}}"} }'
        assert validator.validate(graph) == []

    def test_unknown_output_field_is_warning(self, validator, happy_graph):
        """Test references to undeclared outputs only warn."""
        happy_graph.nodes[1].data["extractions"][0]["selector"] = "{{$input.n1.statusCode}}"
        issues = validator.validate(happy_graph)
        assert codes(issues) == [IssueCode.UNKNOWN_OUTPUT_FIELD]
        assert issues[0].severity == Severity.WARNING
        assert issues[0].field == "extractions.0.selector"

    def test_unknown_node_reference(self, validator, happy_graph):
        """Test references to nodes that do not exist."""
        happy_graph.nodes[1].data["extractions"][0]["selector"] = "{{$input.n9.title}}"
        assert codes(validator.validate(happy_graph)) == [IssueCode.UNKNOWN_REFERENCE]

    def test_reference_by_automatic_alias(self, validator, happy_graph):
        """Test ``navigate1`` names the first navigate node."""
        happy_graph.nodes[1].data["extractions"][0]["selector"] = "{{$input.navigate1.url}}"
        assert validator.validate(happy_graph) == []

    def test_reference_by_explicit_alias(self, validator, happy_graph):
        """Test an explicit alias."""
        happy_graph.nodes[0].data["alias"] = "home"
        happy_graph.nodes[1].data["extractions"][0]["selector"] = "{{$input.home.title}}"
        assert validator.validate(happy_graph) == []

    def test_dynamic_outputs_are_known(self, validator, happy_graph):
        """Test extraction names can be referenced downstream."""
        happy_graph.nodes.append(navigate("n3", url="https://example.com/{{$input.n2.title}}"))
        happy_graph.edges.append(Edge(id="e2", source="n2", target="n3"))
        assert validator.validate(happy_graph) == []

    def test_reference_to_downstream_node(self, validator, happy_graph):
        """Test a node cannot read outputs of nodes that run after it."""
        happy_graph.nodes[0].data["url"] = "https://example.com/{{$input.n2.title}}"
        assert codes(validator.validate(happy_graph)) == [IssueCode.NOT_UPSTREAM]

    def test_unknown_variable(self, validator, happy_graph):
        """Test $vars references must name a workflow or assigned variable."""
        happy_graph.nodes[0].data["url"] = "{{$vars.host}}"
        assert codes(validator.validate(happy_graph)) == [IssueCode.UNKNOWN_VARIABLE]

        happy_graph.variables["host"] = "https://example.com"
        assert validator.validate(happy_graph) == []

    def test_item_outside_loop(self, validator, looping_graph):
        """Test $item on the loop's done branch warns."""
        pause = next(n for n in looping_graph.nodes if n.id == "pause")
        pause.data["label"] = "Wait after {{$item.selector}}"
        issues = validator.validate(looping_graph)
        assert codes(issues) == [IssueCode.ITEM_OUTSIDE_LOOP]
        assert issues[0].node_id == "pause"

    def test_item_in_nested_loop_body(self, validator, looping_graph):
        """Test nodes after an inner loop's done branch are still inside the outer loop."""
        looping_graph.nodes.append(Node(id="inner", type="loop", data={"items": "{{$item.variants}}"}))
        looping_graph.nodes.append(wait("after-inner"))
        looping_graph.nodes[-1].data["label"] = "{{$item.selector}}"
        looping_graph.edges.append(Edge(id="e5", source="read", target="inner"))
        looping_graph.edges.append(Edge(id="e6", source="inner", target="after-inner", source_handle="done"))
        assert validator.validate(looping_graph) == []


class TestReachability:
    """Test phase 5 checks."""

    def test_orphan_node_with_trigger(self, validator):
        """Test nodes nobody connects into are unreachable."""
        graph = WorkflowGraph(nodes=[trigger(), navigate("a"), navigate("b")],
                              edges=[Edge(id="e", source="start", target="a")])
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.UNREACHABLE_NODE]
        assert issues[0].node_id == "b"
        assert issues[0].severity == Severity.WARNING

    def test_isolated_node_without_trigger(self, validator, happy_graph):
        """Test a disconnected node in a trigger-less graph."""
        happy_graph.nodes.append(wait("lonely"))
        issues = validator.validate(happy_graph)
        assert [(i.code, i.node_id) for i in issues] == [(IssueCode.UNREACHABLE_NODE, "lonely")]

    def test_cycle_without_loop_warns(self, validator):
        """Test cycles that do not pass through a loop node."""
        graph = WorkflowGraph(
            nodes=[trigger(), wait("a"), wait("b")],
            edges=[Edge(id="e0", source="start", target="a"), Edge(id="e1", source="a", target="b"),
                   Edge(id="e2", source="b", target="a")],
        )
        issues = validator.validate(graph)
        assert codes(issues) == [IssueCode.CYCLE]
        assert issues[0].edge_id == "e2"

    def test_cycle_through_loop_is_fine(self, validator, looping_graph):
        """Test loop bodies may feed back into the loop node."""
        looping_graph.edges.append(Edge(id="back", source="read", target="each"))
        assert validator.validate(looping_graph) == []

    def test_disabled_node_warns(self, validator, happy_graph):
        """Test nodes switched off are reported without blocking the save."""
        happy_graph.nodes[1].data["enabled"] = False
        issues = validator.validate(happy_graph)
        assert [(i.code, i.node_id) for i in issues] == [(IssueCode.NODE_DISABLED, "n2")]
        assert issues[0].message == "Node is disabled and will be skipped"
        assert not has_errors(issues)

    def test_deep_workflow_warns(self, validator):
        """Test chains more than 50 steps below the trigger."""
        def chain(length):
            nodes = [trigger()] + [wait(f"w{i}") for i in range(length)]
            edges = [Edge(id=f"e{i}", source=nodes[i].id, target=nodes[i + 1].id) for i in range(length)]
            return WorkflowGraph(nodes=nodes, edges=edges)

        assert validator.validate(chain(MAX_WORKFLOW_DEPTH)) == []

        issues = validator.validate(chain(MAX_WORKFLOW_DEPTH + 1))
        assert codes(issues) == [IssueCode.WORKFLOW_TOO_DEEP]
        assert issues[0].message.startswith("Workflow depth is 51 nodes")
        assert issues[0].severity == Severity.WARNING

    def test_depth_ignores_back_edges(self, validator):
        """Test a cycle does not make the depth grow without bound."""
        graph = WorkflowGraph(
            nodes=[trigger(), Node(id="each", type="loop", data={"items": "{{$vars.rows}}"}), wait("a")],
            edges=[Edge(id="e0", source="start", target="each"),
                   Edge(id="e1", source="each", target="a", source_handle="loop"),
                   Edge(id="e2", source="a", target="each")],
            variables={"rows": []},
        )
        assert IssueCode.WORKFLOW_TOO_DEEP not in codes(validator.validate(graph))

    def test_split_issues(self, validator):
        """Test splitting keeps order inside each group."""
        graph = WorkflowGraph(nodes=[trigger(), navigate("a", url=""), wait("b")],
                              edges=[Edge(id="e", source="start", target="a"),
                                     Edge(id="x", source="a", target="zz")])
        errors, warnings = split_issues(validator.validate(graph))
        assert codes(errors) == [IssueCode.DANGLING_EDGE]
        assert codes(warnings) == [IssueCode.INCOMPLETE_CONFIG, IssueCode.UNREACHABLE_NODE]
