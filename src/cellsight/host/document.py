"""Host notebook document and its change feed.

The notebook page is owned by the host application. This module wraps a
snapshot of its markup in a BeautifulSoup tree and replays the host's
mutations through a subscribable change feed, so the rest of CellSight can
react to cells appearing, re-running and disappearing.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Literal, Optional

from bs4 import BeautifulSoup, Tag
from bs4.element import PageElement

logger = logging.getLogger(__name__)

MutationKind = Literal["child_list", "character_data", "attributes"]

ALL_KINDS: frozenset[str] = frozenset({"child_list", "character_data", "attributes"})


@dataclass(frozen=True)
class Mutation:
    """A single change to the host document.

    Attributes:
        kind: What changed
        target: Element whose children, text or attributes changed
        added_nodes: Nodes inserted under target (child_list only)
        removed_nodes: Nodes removed from target (child_list only)
        attribute_name: Changed attribute (attributes only)
    """

    kind: MutationKind
    target: Tag
    added_nodes: tuple[PageElement, ...] = ()
    removed_nodes: tuple[PageElement, ...] = ()
    attribute_name: Optional[str] = None


MutationCallback = Callable[[Mutation, "Subscription"], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by HostDocument.subscribe."""

    target: Tag
    callback: MutationCallback
    kinds: frozenset[str]
    subtree: bool
    _document: "HostDocument" = field(repr=False)
    active: bool = True

    def cancel(self) -> None:
        """Stop receiving mutations. Safe to call more than once."""
        if self.active:
            self.active = False
            self._document._subscriptions.remove(self)


def is_ancestor_or_self(ancestor: PageElement, node: PageElement) -> bool:
    """Check whether ancestor is node or one of its parents."""
    if node is ancestor:
        return True
    return any(parent is ancestor for parent in node.parents)


def has_class(node: PageElement, name: str) -> bool:
    """Check whether an element carries a CSS class."""
    return isinstance(node, Tag) and name in (node.get("class") or [])


class HostDocument:
    """Mutable notebook document with push-based change notification."""

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup
        self._subscriptions: list[Subscription] = []

    @classmethod
    def from_html(cls, markup: str) -> "HostDocument":
        """Parse a document snapshot.

        Args:
            markup: HTML of the notebook page

        Returns:
            HostDocument: Document wrapping the parsed tree
        """
        return cls(BeautifulSoup(markup, "html.parser"))

    @property
    def root(self) -> Tag:
        """Top element to scan: <body> when present, else the whole tree."""
        body = self.soup.body
        return body if body is not None else self.soup

    def is_attached(self, node: PageElement) -> bool:
        """Check whether node is still part of the document."""
        return is_ancestor_or_self(self.soup, node)

    def subscribe(
        self,
        target: Tag,
        callback: MutationCallback,
        kinds: Iterable[str] = ("child_list",),
        subtree: bool = True,
    ) -> Subscription:
        """Watch target (and optionally its subtree) for mutations.

        Args:
            target: Element to watch
            callback: Called with each matching mutation and the subscription
            kinds: Mutation kinds to deliver
            subtree: Also deliver mutations of descendants

        Returns:
            Subscription: Handle used to cancel the watch
        """
        kinds = frozenset(kinds)
        unknown = kinds - ALL_KINDS
        if unknown:
            raise ValueError(f"Unknown mutation kinds: {sorted(unknown)}")

        subscription = Subscription(
            target=target,
            callback=callback,
            kinds=kinds,
            subtree=subtree,
            _document=self,
        )
        self._subscriptions.append(subscription)
        return subscription

    # Mutations

    def append(self, parent: Tag, markup: str) -> list[PageElement]:
        """Insert parsed markup as the last children of parent.

        Args:
            parent: Element receiving the new nodes
            markup: HTML fragment to insert

        Returns:
            list: The inserted top-level nodes
        """
        fragment = BeautifulSoup(markup, "html.parser")
        added = list(fragment.contents)
        for node in added:
            parent.append(node)
        self._dispatch(Mutation(kind="child_list", target=parent, added_nodes=tuple(added)))
        return added

    def set_text(self, node: Tag, text: str) -> None:
        """Replace the text content of node."""
        node.string = text
        self._dispatch(Mutation(kind="character_data", target=node))

    def set_attribute(self, node: Tag, name: str, value: str) -> None:
        """Set an attribute on node."""
        node[name] = value
        self._dispatch(Mutation(kind="attributes", target=node, attribute_name=name))

    def remove(self, node: Tag) -> None:
        """Detach node from the document."""
        parent = node.parent
        node.extract()
        if parent is not None:
            self._dispatch(Mutation(kind="child_list", target=parent, removed_nodes=(node,)))

    def _dispatch(self, mutation: Mutation) -> None:
        """Deliver a mutation to every matching live subscription."""
        if not self.is_attached(mutation.target):
            logger.debug("Dropping %s mutation on detached <%s>", mutation.kind, mutation.target.name)
            return
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            if mutation.kind not in subscription.kinds:
                continue
            if subscription.subtree:
                matches = is_ancestor_or_self(subscription.target, mutation.target)
            else:
                matches = mutation.target is subscription.target
            if matches:
                logger.debug("Delivering %s mutation on <%s>", mutation.kind, mutation.target.name)
                subscription.callback(mutation, subscription)
