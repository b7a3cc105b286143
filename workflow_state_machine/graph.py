"""
Graph export of a transition table, for Graphviz or PlantUML rendering.

The output is a function of the static configuration only. It never shows
which state a machine is currently in, so it can be produced at any time.
"""

from typing import TYPE_CHECKING, List, Optional

from .exceptions import describe
from .table import TransitionRule, TransitionTable

if TYPE_CHECKING:
    from .actions import ActionDispatcher

FORMATS = ("dot", "plantuml")


def edge_label(rule: TransitionRule) -> str:
    """Trigger name, then guard description and reentrant marker, comma separated"""
    parts = [describe(rule.trigger)]
    if rule.guard is not None:
        parts.append(rule.guard.description)
    if rule.reentry:
        parts.append("reentrant")
    return ", ".join(parts)


def export_graph(table: TransitionTable,
                 name: str = "StateMachine",
                 dispatcher: Optional["ActionDispatcher"] = None,
                 format: str = "dot") -> str:
    """
    Render the transition table as a directed graph.

    Args:
        table: Transition table to describe
        name: Graph title
        dispatcher: Optional action dispatcher; entry action names are added to node labels
        format: "dot" (Graphviz) or "plantuml"

    Returns:
        The graph description as text
    """
    if format == "dot":
        return _to_dot(table, name, dispatcher)
    elif format == "plantuml":
        return _to_plantuml(table, name, dispatcher)
    else:
        raise ValueError(f"Unknown graph format: {format}")


def _quote(text: str) -> str:
    return '"' + _escape(text) + '"'


def _escape(text: str) -> str:
    return text.replace('\\', '\\\\').replace('"', '\\"')


def _entry_names(dispatcher: Optional["ActionDispatcher"], state) -> List[str]:
    return dispatcher.entry_names(state) if dispatcher else []


def _to_dot(table: TransitionTable, name: str, dispatcher: Optional["ActionDispatcher"]) -> str:
    lines = [f"digraph {_quote(name)} {{", "    rankdir=LR;"]

    for state in table.states:
        state_name = describe(state)
        actions = _entry_names(dispatcher, state)
        if actions:
            # \n is a DOT line break inside the label, not a Python newline
            label = _escape(state_name) + "".join(f"\\nentry / {_escape(action)}" for action in actions)
            lines.append(f"    {_quote(state_name)} [label=\"{label}\"];")
        else:
            lines.append(f"    {_quote(state_name)};")

    for rule in table:
        lines.append(
            f"    {_quote(describe(rule.source))} -> {_quote(describe(rule.destination))}"
            f" [label={_quote(edge_label(rule))}];"
        )

    lines.append("}")
    return "\n".join(lines)


def _to_plantuml(table: TransitionTable, name: str, dispatcher: Optional["ActionDispatcher"]) -> str:
    lines = ["@startuml", f"title {name} State Machine", ""]

    for state in table.states:
        state_name = describe(state)
        lines.append(f"state {state_name}")
        for action in _entry_names(dispatcher, state):
            lines.append(f"{state_name} : entry / {action}")

    lines.append("")

    for rule in table:
        lines.append(f"{describe(rule.source)} --> {describe(rule.destination)} : {edge_label(rule)}")

    lines.append("@enduml")
    return "\n".join(lines)
