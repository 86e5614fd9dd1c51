"""Routes and actions exempted from CSRF checking."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ExemptList:
    """Exempt request paths (case-insensitive) and "Controller.Action" names."""

    paths: set[str] = field(default_factory=set)
    actions: set[str] = field(default_factory=set)

    def mark(self, route: str) -> None:
        """Exempt a "/path" or a "ControllerName.ActionName"."""
        if route.startswith("/"):
            self.paths.add(route.lower())
        elif len(route.split(".")) == 2:
            self.actions.add(route)
        else:
            raise ValueError(
                f'mark() received invalid argument "{route}". Either provide a path '
                'prefixed with "/" or controller action in the form of '
                '"ControllerName.ActionName".'
            )

    def is_exempt(self, path: str, action: str) -> bool:
        """Tell whether a request to path, handled by action, skips the check."""
        return path.lower() in self.paths or action in self.actions