"""Pydantic models for the ordered plan handed from the planner to the executor."""

from enum import Enum
from typing import Any, Dict, List, Set
import networkx as nx
from pydantic import BaseModel, Field
from ..ingest.models import ResourceRef


class ActionVerb(str, Enum):
    """What the executor does for one resource."""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DESTROY = "destroy"
    NO_OP = "no-op"


class ActionPhase(str, Enum):
    """Which half of a plan an action belongs to; destroys normally run first."""
    DESTROY = "destroy"
    APPLY = "apply"


class PlannedAction(BaseModel):
    """One step of the plan. Produced by the planner, consumed once by the executor."""
    ref: ResourceRef = Field(..., description="Resource the action applies to")
    verb: ActionVerb = Field(..., description="create, update, destroy or no-op")
    reason: str = Field(..., description="Why the planner chose this verb")
    changed_fields: List[str] = Field(default_factory=list, description="Top-level attributes that differ from state")
    replacement: bool = Field(default=False, description="Half of a destroy-then-create replacement")
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Declared attributes to apply (placeholders unresolved); empty for destroy"
    )
    depends_on: List[ResourceRef] = Field(
        default_factory=list,
        description="Resolved dependencies, recorded in state on success"
    )

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @property
    def key(self) -> str:
        """Unique key within a plan: a replaced resource has one destroy and one create."""
        return f"{self.verb}:{self.ref.key}"

    @property
    def phase(self) -> ActionPhase:
        return ActionPhase.DESTROY if self.verb == ActionVerb.DESTROY.value else ActionPhase.APPLY

    @property
    def display_verb(self) -> str:
        if self.replacement:
            return f"{ActionVerb.REPLACE.value} ({self.verb})"
        return self.verb


class Plan(BaseModel):
    """Ordered actions plus the action-level dependency DAG."""
    actions: List[PlannedAction] = Field(default_factory=list, description="Actions in execution order")
    dependencies: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Action key -> keys of actions that must succeed first"
    )

    def get(self, key: str) -> PlannedAction:
        for action in self.actions:
            if action.key == key:
                return action
        raise KeyError(key)

    def action_graph(self) -> nx.DiGraph:
        """DAG over action keys; edges run prerequisite -> dependent action."""
        graph = nx.DiGraph()
        for action in self.actions:
            graph.add_node(action.key)
        for key, prerequisites in self.dependencies.items():
            for prerequisite in prerequisites:
                graph.add_edge(prerequisite, key)
        return graph

    def layers(self) -> List[List[PlannedAction]]:
        """
        Execution layers: the destroy phase first, then the apply phase.

        Within a phase each layer holds every action whose prerequisites sit in
        earlier layers. A destroy that has to wait for an update (directly or
        through other destroys) moves into the apply phase behind it. Actions
        inside a layer keep plan order.
        """
        position = {action.key: index for index, action in enumerate(self.actions)}
        graph = self.action_graph()
        deferred: Set[str] = set()
        for action in self.actions:
            if action.phase == ActionPhase.APPLY:
                deferred.update(nx.descendants(graph, action.key))

        first = [a.key for a in self.actions if a.phase == ActionPhase.DESTROY and a.key not in deferred]
        rest = [a.key for a in self.actions if a.phase == ActionPhase.APPLY or a.key in deferred]
        layers: List[List[PlannedAction]] = []
        for keys in (first, rest):
            for generation in nx.topological_generations(graph.subgraph(keys)):
                ordered = sorted(generation, key=lambda key: position[key])
                layers.append([self.actions[position[key]] for key in ordered])
        return layers

    def downstream_of(self, key: str) -> Set[str]:
        """Every action that transitively requires the given action."""
        graph = self.action_graph()
        if key not in graph:
            return set()
        return set(nx.descendants(graph, key))

    def summary(self) -> Dict[str, int]:
        """Counts per verb; a replacement pair counts once as 'replace'."""
        counts = {verb.value: 0 for verb in ActionVerb}
        for action in self.actions:
            if action.replacement:
                if action.verb == ActionVerb.CREATE.value:
                    counts[ActionVerb.REPLACE.value] += 1
                continue
            counts[action.verb] += 1
        return counts

    @property
    def has_changes(self) -> bool:
        return any(action.verb != ActionVerb.NO_OP.value for action in self.actions)
