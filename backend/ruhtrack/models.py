from __future__ import annotations

import datetime as dt
import random
from typing import Callable, ClassVar, Dict, Generic, List, Optional, Tuple, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

UTC = dt.timezone.utc

Color = Tuple[int, int, int]


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def random_color() -> Color:
    return (random.randint(0, 255), random.randint(0, 255), random.randint(0, 255))


class Node(BaseModel):
    """Fields shared by every element of the work and todo trees."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    created_at: dt.datetime = Field(default_factory=utcnow)
    is_deleted: bool = False

    @classmethod
    def create(cls, name: str, now: Optional[dt.datetime] = None):
        return cls(name=name, created_at=now or utcnow())


def _by_created_at(node: Node) -> dt.datetime:
    return node.created_at


KeyT = TypeVar("KeyT")
ChildT = TypeVar("ChildT", bound=Node)


class TreeNode(Node, Generic[KeyT, ChildT]):
    """Keyed container with a self-healing "current child" selection.

    The same node type is nested to build every level of both hierarchies.
    Soft-deleted children stay in ``children`` so history records keep
    resolving, but they can no longer be selected.
    """

    has_color: ClassVar[bool] = False

    color: Optional[Color] = None
    children: Dict[KeyT, ChildT] = Field(default_factory=dict)
    current_child: Optional[KeyT] = None

    @classmethod
    def create(cls, name: str, now: Optional[dt.datetime] = None):
        node = super().create(name, now)
        if cls.has_color:
            node.color = random_color()
        return node

    def insert_child(self, node: ChildT) -> None:
        self.children[node.id] = node

    def find(self, key: Optional[KeyT]) -> Optional[ChildT]:
        if key is None:
            return None
        return self.children.get(key)

    def set_current(self, key: Optional[KeyT]) -> bool:
        """Select ``key`` (or clear with ``None``); returns whether the selection changed."""
        if key is None:
            changed = self.current_child is not None
            self.current_child = None
            return changed
        child = self.children.get(key)
        if child is None or child.is_deleted:
            return False
        changed = self.current_child != key
        self.current_child = key
        return changed

    def get_current(self) -> Optional[ChildT]:
        if self.current_child is None:
            return None
        child = self.children.get(self.current_child)
        if child is None or child.is_deleted:
            self.current_child = None
            return None
        return child

    def get_sorted(self, key: Optional[Callable[[ChildT], object]] = None) -> List[ChildT]:
        return sorted(self.children.values(), key=key or _by_created_at)

    def live_children(self) -> List[ChildT]:
        return [child for child in self.get_sorted() if not child.is_deleted]

    def remove_child(self, key: KeyT) -> Optional[ChildT]:
        child = self.children.pop(key, None)
        if self.current_child == key:
            self.current_child = None
        return child

    def soft_delete_child(self, key: KeyT) -> Optional[ChildT]:
        child = self.children.get(key)
        if child is None or child.is_deleted:
            return None
        child.is_deleted = True
        if self.current_child == key:
            self.current_child = None
        return child


class Subject(Node):
    duration: dt.timedelta = dt.timedelta(0)

    def accumulate(self, elapsed: dt.timedelta) -> None:
        if elapsed > dt.timedelta(0):
            self.duration += elapsed


class SubProject(TreeNode[UUID, Subject]):
    def get_time(self) -> dt.timedelta:
        total = dt.timedelta(0)
        for subject in self.children.values():
            if not subject.is_deleted:
                total += subject.duration
        return total


class Project(TreeNode[UUID, SubProject]):
    has_color: ClassVar[bool] = True

    def get_time(self) -> dt.timedelta:
        total = dt.timedelta(0)
        for sub_project in self.children.values():
            if not sub_project.is_deleted:
                total += sub_project.get_time()
        return total


class ProjectTree(TreeNode[UUID, Project]):
    pass


class TodoSubject(Node):
    is_done: bool = False

    def toggle(self) -> None:
        self.is_done = not self.is_done


class TodoSubProject(TreeNode[UUID, TodoSubject]):
    pass


class TodoProject(TreeNode[UUID, TodoSubProject]):
    has_color: ClassVar[bool] = True


class TodoTree(TreeNode[UUID, TodoProject]):
    pass


ROOT_NAME = "root"
