from context_budget.configuration.config import ContextBudgetSettings, get_settings

__all__ = ["ContextBudgetSettings", "get_settings"]
