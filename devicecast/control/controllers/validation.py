from typing import Any

from devicecast.control.controllers.types import Element
from devicecast.control.sdk.types.exceptions import OperationalError

# Keys that belong under `attributes`, commonly misplaced at the selector root.
ATTRIBUTE_KEYS = (
    "text",
    "accessibilityIdentifier",
    "accessibilityLabel",
    "resource-id",
    "content-desc",
    "class",
    "baseClass",
)


def validate_element_attributes(element: Element | dict[str, Any] | None):
    if element is None:
        return
    keys = element.keys() if isinstance(element, dict) else (element.model_extra or {}).keys()
    misplaced = [key for key in keys if key in ATTRIBUTE_KEYS]
    if misplaced:
        names = ", ".join(f"'{key}'" for key in misplaced)
        raise OperationalError(
            f"Element has invalid properties: {names}. "
            "Did you mean to put these under 'attributes'?"
        )


def validate_action_element(action: Any):
    element = action.get("element") if isinstance(action, dict) else getattr(action, "element", None)
    validate_element_attributes(element)
