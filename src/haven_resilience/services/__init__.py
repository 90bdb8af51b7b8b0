from .advisor import RESILIENCE_RISK_FACTORS, AdvisorService

__all__ = ["AdvisorService", "RESILIENCE_RISK_FACTORS"]
