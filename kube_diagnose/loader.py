import glob
import importlib
import logging
import os

from kube_diagnose.rules.base_rule import DiagnosticRule

logger = logging.getLogger(__name__)

RESOURCE_KINDS = {"pod", "service"}

# ----------------------------
# Rule discovery
# ----------------------------


def validate_rule(rule: DiagnosticRule):
    required_fields = ["name", "category", "priority", "resource"]
    for field in required_fields:
        if not hasattr(rule, field):
            raise ValueError(f"Rule {rule} missing required field '{field}'")

    if not isinstance(rule.name, str) or not rule.name:
        raise ValueError("Rule.name must be a non-empty string")
    if not isinstance(rule.category, str) or not rule.category:
        raise ValueError(f"Rule {rule.name}.category must be a non-empty string")
    if not isinstance(rule.priority, int):
        raise ValueError(f"Rule {rule.name}.priority must be an integer")
    if not (0 <= rule.priority <= 1000):
        raise ValueError(f"Rule {rule.name}.priority must be between 0 and 1000")
    if rule.resource not in RESOURCE_KINDS:
        raise ValueError(
            f"Rule {rule.name}.resource must be one of {sorted(RESOURCE_KINDS)}"
        )


def load_rules(resource: str) -> list[DiagnosticRule]:
    """
    Instantiate every DiagnosticRule subclass defined in the rules package
    for the given resource kind, ordered by priority.
    """
    if resource not in RESOURCE_KINDS:
        raise ValueError(f"Unknown resource kind '{resource}'")
    rule_folder = os.path.join(os.path.dirname(__file__), "rules")

    rules: list[DiagnosticRule] = []
    seen: set[type] = set()

    for file in sorted(glob.glob(os.path.join(rule_folder, "*.py"))):
        if os.path.basename(file) == "base_rule.py":
            continue
        module_name = os.path.splitext(os.path.basename(file))[0]
        module = importlib.import_module(f"kube_diagnose.rules.{module_name}")
        for attr in dir(module):
            cls = getattr(module, attr)
            if (
                isinstance(cls, type)
                and issubclass(cls, DiagnosticRule)
                and cls is not DiagnosticRule
                and cls not in seen
            ):
                seen.add(cls)
                rule = cls()
                if rule.resource == resource:
                    rules.append(rule)

    # ---- CONTRACT VALIDATION ----
    for rule in rules:
        validate_rule(rule)

    rules.sort(key=lambda r: r.priority)
    logger.debug("Loaded %d %s rules: %s", len(rules), resource, [r.name for r in rules])
    return rules


_DEFAULT_RULES: dict[str, list[DiagnosticRule]] = {}


def get_default_rules(resource: str) -> list[DiagnosticRule]:
    if resource not in _DEFAULT_RULES:
        _DEFAULT_RULES[resource] = load_rules(resource)
    return _DEFAULT_RULES[resource]
