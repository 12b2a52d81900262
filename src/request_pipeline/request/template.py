"""
Descriptor templates.

A template carries shared defaults for a family of endpoints, for example a
service's base URL and headers. Precedence is explicit and fixed:

    RequestDescriptor field defaults
        < template defaults (outermost template first)
        < arguments passed to build()

Headers are merged key by key (case-insensitively, later values win) instead
of being replaced wholesale.
"""

from typing import Any, Dict, Mapping

from multidict import CIMultiDict

from request_pipeline.request.descriptor import RequestDescriptor


def _merge_headers(*layers: Mapping[str, str]) -> Dict[str, str]:
    merged: CIMultiDict = CIMultiDict()
    for layer in layers:
        for key, value in layer.items():
            merged[key] = value
    return dict(merged)


class DescriptorTemplate:
    """
    Default-supplying builder for RequestDescriptor.

    Example:
        service = DescriptorTemplate(
            base_url="https://my.service/",
            headers={"X-Client": "reports"},
        )
        list_reports = service.build(name="list_reports", path="reports")
    """

    def __init__(self, **defaults: Any):
        unknown = set(defaults) - set(RequestDescriptor.model_fields)
        if unknown:
            raise TypeError(f"Unknown descriptor fields: {', '.join(sorted(unknown))}")
        self._defaults = defaults

    @property
    def defaults(self) -> Dict[str, Any]:
        return dict(self._defaults)

    def derive(self, **defaults: Any) -> "DescriptorTemplate":
        """Return a new template layering defaults over this one."""
        return DescriptorTemplate(**self._combine(defaults))

    def build(self, **fields: Any) -> RequestDescriptor:
        """
        Build a descriptor; fields passed here take precedence over defaults.

        Raises:
            pydantic.ValidationError: If the combined fields are invalid
        """
        return RequestDescriptor(**self._combine(fields))

    def _combine(self, overrides: Mapping[str, Any]) -> Dict[str, Any]:
        combined = dict(self._defaults)
        combined.update(overrides)
        if "headers" in self._defaults and "headers" in overrides:
            combined["headers"] = _merge_headers(
                self._defaults["headers"], overrides["headers"]
            )
        return combined
