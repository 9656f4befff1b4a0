"""Quadtree distribution of keypoints over an image region."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from .keypoint import KeyPoint

Point = tuple[int, int]


@dataclass(eq=False)
class ExtractorNode:
    """A rectangular cell of the quadtree holding the keypoints inside it."""

    ul: Point
    ur: Point
    bl: Point
    br: Point
    keys: list[KeyPoint] = field(default_factory=list)
    no_more: bool = False

    def divide(self) -> tuple[ExtractorNode, ExtractorNode, ExtractorNode, ExtractorNode]:
        """Split into four quadrants: upper-left, upper-right, lower-left, lower-right."""
        half_x = math.ceil((self.ur[0] - self.ul[0]) / 2)
        half_y = math.ceil((self.br[1] - self.ul[1]) / 2)
        ulx, uly = self.ul

        n1 = ExtractorNode(
            ul=self.ul,
            ur=(ulx + half_x, uly),
            bl=(ulx, uly + half_y),
            br=(ulx + half_x, uly + half_y),
        )
        n2 = ExtractorNode(ul=n1.ur, ur=self.ur, bl=n1.br, br=(self.ur[0], uly + half_y))
        n3 = ExtractorNode(ul=n1.bl, ur=n1.br, bl=self.bl, br=(n1.br[0], self.bl[1]))
        n4 = ExtractorNode(ul=n3.ur, ur=n2.br, bl=n3.br, br=self.br)

        split_x, split_y = n1.ur[0], n1.br[1]
        for kp in self.keys:
            if kp.x < split_x:
                (n1 if kp.y < split_y else n3).keys.append(kp)
            elif kp.y < split_y:
                n2.keys.append(kp)
            else:
                n4.keys.append(kp)

        children = (n1, n2, n3, n4)
        for child in children:
            if len(child.keys) == 1:
                child.no_more = True
        return children

    def best(self) -> KeyPoint:
        """Return the keypoint with the strongest response (the first on ties)."""
        if not self.keys:
            raise ValueError("node holds no keypoints")
        return max(self.keys, key=lambda kp: kp.response)


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def distribute_oct_tree(
    keypoints: list[KeyPoint],
    min_x: int,
    max_x: int,
    min_y: int,
    max_y: int,
    n: int,
) -> list[KeyPoint]:
    """Spread keypoints evenly by subdividing the region until about ``n`` cells exist.

    Keypoint coordinates are relative to ``(min_x, min_y)``. One keypoint,
    the strongest, is kept per final cell.
    """
    width = max_x - min_x
    height = max_y - min_y
    if height <= 0 or width <= 0:
        raise ValueError("the region must have a positive width and height")

    n_ini = max(1, _round_half_away(width / height))
    h_x = width / n_ini

    initial = []
    for i in range(n_ini):
        left = int(h_x * i)
        right = int(h_x * (i + 1))
        initial.append(
            ExtractorNode(ul=(left, 0), ur=(right, 0), bl=(left, height), br=(right, height))
        )

    for kp in keypoints:
        index = min(max(int(kp.x / h_x), 0), n_ini - 1)
        initial[index].keys.append(kp)

    nodes: list[ExtractorNode] = []
    for node in initial:
        if not node.keys:
            continue
        if len(node.keys) == 1:
            node.no_more = True
        nodes.append(node)

    finished = False
    while not finished:
        prev_size = len(nodes)
        front: list[ExtractorNode] = []
        kept: list[ExtractorNode] = []
        expandable: list[tuple[int, ExtractorNode]] = []

        for node in nodes:
            if node.no_more:
                kept.append(node)
                continue
            for child in node.divide():
                if child.keys:
                    front.append(child)
                    if len(child.keys) > 1:
                        expandable.append((len(child.keys), child))

        nodes = front[::-1] + kept
        n_to_expand = len(expandable)

        if len(nodes) >= n or len(nodes) == prev_size:
            finished = True
        elif len(nodes) + n_to_expand * 3 > n:
            while not finished:
                prev_size = len(nodes)
                previous = sorted(expandable, key=lambda pair: pair[0])
                expandable = []

                for _, node in reversed(previous):
                    new_front = []
                    for child in node.divide():
                        if child.keys:
                            new_front.append(child)
                            if len(child.keys) > 1:
                                expandable.append((len(child.keys), child))
                    nodes.remove(node)
                    nodes[:0] = new_front[::-1]
                    if len(nodes) >= n:
                        break

                if len(nodes) >= n or len(nodes) == prev_size:
                    finished = True

    return [node.best() for node in nodes]