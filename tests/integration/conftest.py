"""Shared fixtures for kubepath integration tests.

Provides an in-memory Neo4j double that understands the statements the
graph stores send, exposed over both channels:

    * an ``httpx.MockTransport`` speaking the transactional HTTP JSON format
    * a fake async Bolt driver with sessions and rollback-able transactions

so one conformance suite can run against both adapters without a real
database.
"""

from __future__ import annotations

import copy
import itertools
import json
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from neo4j.exceptions import ServiceUnavailable

from kubepath.graph.models import AssetRef, Relationship, RelationKind
from kubepath.models.assets import Asset, AssetKind
from kubepath.store import BoltGraphStore, Channel, GraphStore, HttpGraphStore, cypher

from ..conftest import BoltNode, BoltPath, BoltRelationship, server_failure

_CREATE_NODES = re.compile(r"^UNWIND \$rows AS props CREATE \(n:(\w+)\) SET n = props$")
_MERGE_EDGES = re.compile(r"MERGE \(a\)-\[r:(\w+)\]->\(b\) RETURN count\(r\) AS merged$")


# ---------------------------------------------------------------------------
# In-memory graph
# ---------------------------------------------------------------------------


class FakeQueryFailure(Exception):
    """Raised by FakeGraph when a statement is rejected."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class NodeRecord:
    id: int
    labels: tuple[str, ...]
    props: dict[str, Any]

    @property
    def element_id(self) -> str:
        return f"4:fake:{self.id}"


@dataclass
class RelRecord:
    id: int
    type: str
    start: int
    end: int
    props: dict[str, Any] = field(default_factory=dict)

    @property
    def element_id(self) -> str:
        return f"5:fake:{self.id}"


@dataclass
class PathRecord:
    nodes: list[NodeRecord]
    rels: list[RelRecord]


class FakeGraph:
    """A tiny interpreter for the fixed statement set kubepath emits.

    ``canned`` maps a statement to the columns and rows it returns.
    ``fail_on`` makes any statement containing that substring fail with
    ``fail_code`` (a syntax error by default); ``unavailable`` makes every
    channel report the store as unreachable.
    """

    def __init__(self) -> None:
        self.nodes: dict[int, NodeRecord] = {}
        self.rels: dict[int, RelRecord] = {}
        self._ids = itertools.count(0)
        self.fail_on: str | None = None
        self.fail_code = "Neo.ClientError.Statement.SyntaxError"
        self.unavailable = False
        self.statements: list[str] = []
        self.canned: dict[str, tuple[list[str], list[list[Any]]]] = {}

    # -- seeding helpers -----------------------------------------------------

    def add_node(self, label: str, **props: Any) -> NodeRecord:
        node = NodeRecord(next(self._ids), (label,), {"type": label, **props})
        self.nodes[node.id] = node
        return node

    def add_rel(self, start: NodeRecord, rel_type: str, end: NodeRecord) -> RelRecord:
        rel = RelRecord(next(self._ids), rel_type, start.id, end.id)
        self.rels[rel.id] = rel
        return rel

    def find(self, kind: str, name: str, namespace: str | None = None) -> NodeRecord | None:
        for node in self.nodes.values():
            props = node.props
            if props.get("type") == kind and props.get("name") == name and props.get("namespace") == namespace:
                return node
        return None

    def rel_triples(self) -> set[tuple[Any, str, Any]]:
        def ident(node_id: int) -> tuple[Any, Any, Any]:
            props = self.nodes[node_id].props
            return (props.get("type"), props.get("namespace"), props.get("name"))

        return {(ident(r.start), r.type, ident(r.end)) for r in self.rels.values()}

    # -- transactions --------------------------------------------------------

    def snapshot(self) -> tuple[dict[int, NodeRecord], dict[int, RelRecord]]:
        return copy.deepcopy(self.nodes), copy.deepcopy(self.rels)

    def restore(self, state: tuple[dict[int, NodeRecord], dict[int, RelRecord]]) -> None:
        self.nodes, self.rels = state

    # -- execution -----------------------------------------------------------

    def run(self, statement: str, params: dict[str, Any]) -> tuple[list[str], list[list[Any]]]:
        self.statements.append(statement)
        if self.fail_on and self.fail_on in statement:
            raise FakeQueryFailure(self.fail_code, f"Invalid input near '{self.fail_on}'")
        if statement in self.canned:
            return self.canned[statement]

        if statement == cypher.PING:
            return ["ok"], [[1]]
        if statement == cypher.CLEAR_GRAPH:
            self.nodes.clear()
            self.rels.clear()
            return [], []
        if statement.startswith("CREATE INDEX") and statement.endswith("ON (n.name)"):
            return [], []
        if match := _CREATE_NODES.match(statement):
            for props in params["rows"]:
                node = NodeRecord(next(self._ids), (match.group(1),), dict(props))
                self.nodes[node.id] = node
            return [], []
        if statement.startswith("UNWIND $rows AS row MATCH (a {type: row.sourceType") and (
            match := _MERGE_EDGES.search(statement)
        ):
            return ["merged"], [[self._merge_edges(match.group(1), params["rows"])]]
        if statement == cypher.ALL_NODES:
            return ["n"], [[node] for node in self.nodes.values()]
        if statement == cypher.ALL_EDGES:
            return ["r"], [[rel] for rel in self.rels.values()]
        if statement == cypher.NODE_COUNTS:
            counts: dict[Any, int] = {}
            for node in self.nodes.values():
                counts[node.props.get("type")] = counts.get(node.props.get("type"), 0) + 1
            return ["kind", "count"], [[kind, count] for kind, count in counts.items()]
        if statement == cypher.EDGE_COUNT:
            return ["count"], [[len(self.rels)]]
        if statement == cypher.SHORTEST_PATH:
            return ["path"], [[path] for path in self._shortest_paths(params["startName"], params["endName"])]
        if statement == cypher.VULNERABILITY_PATTERN:
            return ["a", "b", "c", "d"], self._vulnerability_rows()
        raise FakeQueryFailure("Neo.ClientError.Statement.SyntaxError", f"Invalid input: {statement[:40]}")

    def _endpoint(self, kind: str, name: str, namespace: str | None) -> NodeRecord | None:
        for node in self.nodes.values():
            props = node.props
            if (
                props.get("type") == kind
                and props.get("name") == name
                and (props.get("namespace") or "") == (namespace or "")
            ):
                return node
        return None

    def _merge_edges(self, rel_type: str, rows: list[dict[str, Any]]) -> int:
        merged = 0
        for row in rows:
            a = self._endpoint(row["sourceType"], row["sourceName"], row["sourceNamespace"])
            b = self._endpoint(row["targetType"], row["targetName"], row["targetNamespace"])
            if a is None or b is None:
                continue
            existing = [r for r in self.rels.values() if r.start == a.id and r.end == b.id and r.type == rel_type]
            if not existing:
                rel = RelRecord(next(self._ids), rel_type, a.id, b.id)
                self.rels[rel.id] = rel
            merged += 1
        return merged

    def _shortest_paths(self, start_name: str, end_name: str) -> list[PathRecord]:
        starts = [n for n in self.nodes.values() if n.props.get("name") == start_name]
        ends = [n for n in self.nodes.values() if n.props.get("name") == end_name]
        paths = []
        for start in starts:
            for end in ends:
                if start.id == end.id:
                    continue
                path = self._bfs(start, end)
                if path is not None:
                    paths.append(path)
        return paths

    def _bfs(self, start: NodeRecord, end: NodeRecord) -> PathRecord | None:
        queue: deque[tuple[int, list[int], list[int]]] = deque([(start.id, [start.id], [])])
        visited = {start.id}
        while queue:
            current, node_ids, rel_ids = queue.popleft()
            if current == end.id:
                return PathRecord([self.nodes[i] for i in node_ids], [self.rels[i] for i in rel_ids])
            if len(rel_ids) >= cypher.MAX_PATH_HOPS:
                continue
            for rel in self.rels.values():
                if current not in (rel.start, rel.end):
                    continue
                neighbour = rel.end if rel.start == current else rel.start
                if neighbour in visited:
                    continue
                visited.add(neighbour)
                queue.append((neighbour, [*node_ids, neighbour], [*rel_ids, rel.id]))
        return None

    def _vulnerability_rows(self) -> list[list[Any]]:
        def typed(rel_type: str, start_label: str, end_label: str) -> list[RelRecord]:
            return [
                r
                for r in self.rels.values()
                if r.type == rel_type
                and start_label in self.nodes[r.start].labels
                and end_label in self.nodes[r.end].labels
            ]

        rows = []
        for connects in typed("CONNECTS_TO", "Pod", "Service"):
            for runs_as in typed("RUNS_AS", "Pod", "ServiceAccount"):
                if self.nodes[runs_as.end].props.get("name") != "default":
                    continue
                rows.append(
                    [
                        self.nodes[connects.start],
                        self.nodes[connects.end],
                        self.nodes[runs_as.start],
                        self.nodes[runs_as.end],
                    ]
                )
        return rows


# ---------------------------------------------------------------------------
# HTTP channel double
# ---------------------------------------------------------------------------


def _http_encode(value: Any, graph_nodes: dict[str, Any], graph_rels: dict[str, Any], graph: FakeGraph) -> Any:
    """Return (row value, meta) for one column in the HTTP row/meta format."""
    if isinstance(value, NodeRecord):
        graph_nodes[str(value.id)] = {
            "id": str(value.id),
            "elementId": value.element_id,
            "labels": list(value.labels),
            "properties": dict(value.props),
        }
        return dict(value.props), {"id": value.id, "elementId": value.element_id, "type": "node", "deleted": False}
    if isinstance(value, RelRecord):
        graph_rels[str(value.id)] = {
            "id": str(value.id),
            "elementId": value.element_id,
            "type": value.type,
            "startNode": str(value.start),
            "endNode": str(value.end),
            "startNodeElementId": graph.nodes[value.start].element_id,
            "endNodeElementId": graph.nodes[value.end].element_id,
            "properties": dict(value.props),
        }
        return dict(value.props), {
            "id": value.id,
            "elementId": value.element_id,
            "type": "relationship",
            "deleted": False,
        }
    if isinstance(value, PathRecord):
        row, meta = [], []
        for i, node in enumerate(value.nodes):
            if i:
                r, m = _http_encode(value.rels[i - 1], graph_nodes, graph_rels, graph)
                row.append(r)
                meta.append(m)
            r, m = _http_encode(node, graph_nodes, graph_rels, graph)
            row.append(r)
            meta.append(m)
        return row, meta
    if isinstance(value, list):
        encoded = [_http_encode(v, graph_nodes, graph_rels, graph) for v in value]
        return [r for r, _ in encoded], [m for _, m in encoded]
    return value, None


def neo4j_http_handler(graph: FakeGraph, status_code: int = 200):
    """Build an ``httpx.MockTransport`` handler backed by *graph*."""

    def handler(request: httpx.Request) -> httpx.Response:
        if graph.unavailable:
            raise httpx.ConnectError("connection refused", request=request)
        if status_code != 200:
            return httpx.Response(status_code, json={"errors": []})
        assert request.url.path == "/db/neo4j/tx/commit"
        body = json.loads(request.content)
        statement = body["statements"][0]
        try:
            columns, rows = graph.run(statement["statement"], statement.get("parameters") or {})
        except FakeQueryFailure as exc:
            return httpx.Response(200, json={"results": [], "errors": [{"code": exc.code, "message": exc.message}]})
        data = []
        for row in rows:
            graph_nodes: dict[str, Any] = {}
            graph_rels: dict[str, Any] = {}
            encoded = [_http_encode(value, graph_nodes, graph_rels, graph) for value in row]
            data.append(
                {
                    "row": [r for r, _ in encoded],
                    "meta": [m for _, m in encoded],
                    "graph": {"nodes": list(graph_nodes.values()), "relationships": list(graph_rels.values())},
                }
            )
        return httpx.Response(200, json={"results": [{"columns": columns, "data": data}], "errors": []})

    return handler


# ---------------------------------------------------------------------------
# Bolt channel double
# ---------------------------------------------------------------------------


def _bolt_node(record: NodeRecord) -> BoltNode:
    return BoltNode(record.element_id, record.labels, record.props)


def _bolt_rel(record: RelRecord, graph: FakeGraph) -> BoltRelationship:
    return BoltRelationship(
        record.element_id,
        record.type,
        _bolt_node(graph.nodes[record.start]),
        _bolt_node(graph.nodes[record.end]),
        record.props,
    )


def _bolt_value(value: Any, graph: FakeGraph) -> Any:
    if isinstance(value, NodeRecord):
        return _bolt_node(value)
    if isinstance(value, RelRecord):
        return _bolt_rel(value, graph)
    if isinstance(value, PathRecord):
        return BoltPath([_bolt_node(n) for n in value.nodes], [_bolt_rel(r, graph) for r in value.rels])
    if isinstance(value, list):
        return [_bolt_value(v, graph) for v in value]
    return value


class FakeRecord:
    def __init__(self, pairs: list[tuple[str, Any]]) -> None:
        self._pairs = pairs

    def items(self) -> list[tuple[str, Any]]:
        return list(self._pairs)


class FakeResult:
    def __init__(self, records: list[FakeRecord]) -> None:
        self._records = records

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self._records:
            yield record


def _bolt_run(graph: FakeGraph, statement: str, parameters: dict[str, Any]) -> FakeResult:
    if graph.unavailable:
        raise ServiceUnavailable("Unable to retrieve routing information")
    try:
        columns, rows = graph.run(statement, copy.deepcopy(parameters))
    except FakeQueryFailure as exc:
        raise server_failure(exc.code, exc.message) from exc
    return FakeResult([FakeRecord([(c, _bolt_value(v, graph)) for c, v in zip(columns, row)]) for row in rows])


class FakeTransaction:
    def __init__(self, graph: FakeGraph) -> None:
        self._graph = graph
        self._saved = graph.snapshot()
        self._closed = False
        self.rolled_back = False

    async def run(self, statement: str, parameters: dict[str, Any] | None = None) -> FakeResult:
        return _bolt_run(self._graph, statement, parameters or {})

    async def commit(self) -> None:
        self._closed = True

    async def rollback(self) -> None:
        self._graph.restore(self._saved)
        self.rolled_back = True
        self._closed = True

    def closed(self) -> bool:
        return self._closed


class FakeSession:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver
        self.transactions: list[FakeTransaction] = []

    async def __aenter__(self) -> FakeSession:
        self._driver.open_sessions += 1
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._driver.open_sessions -= 1

    async def run(self, statement: str, parameters: dict[str, Any] | None = None) -> FakeResult:
        return _bolt_run(self._driver.graph, statement, parameters or {})

    async def begin_transaction(self) -> FakeTransaction:
        if self._driver.graph.unavailable:
            raise ServiceUnavailable("Unable to retrieve routing information")
        tx = FakeTransaction(self._driver.graph)
        self.transactions.append(tx)
        return tx


class FakeDriver:
    """Stands in for ``neo4j.AsyncDriver``; tracks open sessions."""

    def __init__(self, graph: FakeGraph) -> None:
        self.graph = graph
        self.open_sessions = 0
        self.sessions: list[FakeSession] = []
        self.closed = False

    def session(self, database: str | None = None) -> FakeSession:
        assert database == "neo4j"
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Asset factory helpers
# ---------------------------------------------------------------------------


def make_asset(
    kind: AssetKind,
    name: str,
    namespace: str | None = "default",
    labels: dict[str, str] | None = None,
    **attributes: Any,
) -> Asset:
    """Create an Asset with sensible defaults for testing."""
    return Asset(
        kind=kind,
        name=name,
        namespace=None if kind.cluster_scoped else namespace,
        creation_time="2024-01-15T10:30:00+00:00",
        labels=labels or {},
        attributes=attributes,
    )


def sample_assets() -> dict[AssetKind, list[Asset]]:
    """A small cluster: one namespace, a web deployment, its pod, service and identity."""
    return {
        AssetKind.NAMESPACE: [make_asset(AssetKind.NAMESPACE, "default", status="Active")],
        AssetKind.POD: [
            make_asset(
                AssetKind.POD,
                "web-1",
                labels={"app": "web"},
                status="Running",
                podIP="10.0.0.5",
                serviceAccount="web-sa",
                containers=[{"name": "web", "image": "nginx:1.25", "ports": [{"containerPort": 80}]}],
            )
        ],
        AssetKind.SERVICE: [
            make_asset(AssetKind.SERVICE, "web-svc", serviceType="ClusterIP", selector={"app": "web"})
        ],
        AssetKind.DEPLOYMENT: [
            make_asset(
                AssetKind.DEPLOYMENT,
                "web",
                replicas=1,
                readyReplicas=1,
                selector={"app": "web"},
                template={"labels": {"app": "web"}},
            )
        ],
        AssetKind.SERVICE_ACCOUNT: [make_asset(AssetKind.SERVICE_ACCOUNT, "web-sa", secrets=[])],
        AssetKind.CLUSTER_ROLE: [make_asset(AssetKind.CLUSTER_ROLE, "view", rules=[{"verbs": ["get"]}])],
    }


def sample_relationships() -> list[Relationship]:
    pod = AssetRef(AssetKind.POD, "web-1", "default")
    return [
        Relationship(pod, AssetRef(AssetKind.NAMESPACE, "default"), RelationKind.BELONGS_TO),
        Relationship(AssetRef(AssetKind.SERVICE, "web-svc", "default"), pod, RelationKind.SELECTS),
        Relationship(AssetRef(AssetKind.DEPLOYMENT, "web", "default"), pod, RelationKind.MANAGES),
        Relationship(AssetRef(AssetKind.SERVICE_ACCOUNT, "web-sa", "default"), pod, RelationKind.PROVIDES_IDENTITY),
    ]


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


def make_http_store(graph: FakeGraph, status_code: int = 200) -> HttpGraphStore:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(neo4j_http_handler(graph, status_code)),
        base_url="http://neo4j.test:7474",
    )
    return HttpGraphStore(client, database="neo4j")


@pytest.fixture()
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture()
def fake_driver(fake_graph: FakeGraph) -> FakeDriver:
    return FakeDriver(fake_graph)


@pytest.fixture()
def http_store(fake_graph: FakeGraph) -> HttpGraphStore:
    return make_http_store(fake_graph)


@pytest.fixture()
def bolt_store(fake_driver: FakeDriver) -> BoltGraphStore:
    return BoltGraphStore(fake_driver, database="neo4j")


@pytest.fixture(params=[Channel.REST, Channel.BOLT], ids=["rest", "bolt"])
def store(request: pytest.FixtureRequest, fake_graph: FakeGraph) -> GraphStore:
    """Parametrized over both channels, sharing one in-memory graph."""
    if request.param is Channel.REST:
        return make_http_store(fake_graph)
    return BoltGraphStore(FakeDriver(fake_graph), database="neo4j")
