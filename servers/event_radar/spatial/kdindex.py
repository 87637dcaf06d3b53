"""Static 2D k-d index over (id, x, y) points with box and radius queries."""

from typing import Iterable


class KDIndex:
    """Immutable k-d tree stored in flat arrays.

    Points are reordered in place so each subrange is split at its median,
    alternating x and y. Ranges of node_size or fewer points are scanned
    linearly.
    """

    def __init__(self, points: Iterable[tuple[int, float, float]], node_size: int = 64):
        items = list(points)
        self.node_size = max(1, node_size)
        self.ids = [p[0] for p in items]
        self.xs = [p[1] for p in items]
        self.ys = [p[2] for p in items]
        self._build(0, len(items) - 1, 0)

    def __len__(self) -> int:
        return len(self.ids)

    def _build(self, left: int, right: int, axis: int) -> None:
        stack = [(left, right, axis)]
        while stack:
            left, right, axis = stack.pop()
            if right - left <= self.node_size:
                continue

            coords = self.xs if axis == 0 else self.ys
            order = sorted(range(left, right + 1), key=lambda i: coords[i])
            self.ids[left:right + 1] = [self.ids[i] for i in order]
            self.xs[left:right + 1], self.ys[left:right + 1] = (
                [self.xs[i] for i in order],
                [self.ys[i] for i in order],
            )

            middle = (left + right) // 2
            stack.append((left, middle - 1, 1 - axis))
            stack.append((middle + 1, right, 1 - axis))

    def range(self, min_x: float, min_y: float, max_x: float, max_y: float) -> list[int]:
        """Ids of points inside the box (edges included)."""
        result: list[int] = []
        stack = [(0, len(self.ids) - 1, 0)]

        while stack:
            left, right, axis = stack.pop()
            if right < left:
                continue

            if right - left <= self.node_size:
                for i in range(left, right + 1):
                    if min_x <= self.xs[i] <= max_x and min_y <= self.ys[i] <= max_y:
                        result.append(self.ids[i])
                continue

            middle = (left + right) // 2
            x, y = self.xs[middle], self.ys[middle]
            if min_x <= x <= max_x and min_y <= y <= max_y:
                result.append(self.ids[middle])

            low, high = (min_x, max_x) if axis == 0 else (min_y, max_y)
            value = x if axis == 0 else y
            if low <= value:
                stack.append((left, middle - 1, 1 - axis))
            if high >= value:
                stack.append((middle + 1, right, 1 - axis))

        return result

    def within(self, qx: float, qy: float, radius: float) -> list[int]:
        """Ids of points within `radius` of (qx, qy)."""
        result: list[int] = []
        stack = [(0, len(self.ids) - 1, 0)]
        r2 = radius * radius

        while stack:
            left, right, axis = stack.pop()
            if right < left:
                continue

            if right - left <= self.node_size:
                for i in range(left, right + 1):
                    if (self.xs[i] - qx) ** 2 + (self.ys[i] - qy) ** 2 <= r2:
                        result.append(self.ids[i])
                continue

            middle = (left + right) // 2
            x, y = self.xs[middle], self.ys[middle]
            if (x - qx) ** 2 + (y - qy) ** 2 <= r2:
                result.append(self.ids[middle])

            value, query = (x, qx) if axis == 0 else (y, qy)
            if query - radius <= value:
                stack.append((left, middle - 1, 1 - axis))
            if query + radius >= value:
                stack.append((middle + 1, right, 1 - axis))

        return result
