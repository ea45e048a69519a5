"""
Label utilities for matching resources against a key=value selector.
"""

from typing import Dict, Mapping, Optional, Tuple


DEFAULT_LABEL_KEY = "name"


def parse_label_selector(selector: str) -> Tuple[str, str]:
    """
    Parse a label selector in format "key=value".
    
    Args:
        selector: Selector string
        
    Returns:
        Tuple of (key, value)
        
    Raises:
        ValueError: If selector format is invalid
    """
    if "=" not in selector:
        raise ValueError(f"Invalid label format: {selector}. Expected 'key=value'")
    
    key, value = selector.split("=", 1)
    if not key.strip() or not value.strip():
        raise ValueError(f"Invalid label format: {selector}. Key and value must not be empty")
    
    return key.strip(), value.strip()


def label_matches(labels: Optional[Mapping[str, str]], key: str, value: str) -> bool:
    """
    Check whether a resource's labels carry key=value.
    
    A missing key never matches, even when value is empty.
    """
    if not labels or key not in labels:
        return False
    return labels[key] == value


def normalize_labels(labels: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy provider label maps (which may be proto maps) into a plain dict."""
    if not labels:
        return {}
    return {str(k): str(v) for k, v in labels.items()}


def format_labels(labels: Mapping[str, str]) -> str:
    """Render labels as a stable, comma separated key=value string."""
    return ",".join(f"{k}={labels[k]}" for k in sorted(labels))
