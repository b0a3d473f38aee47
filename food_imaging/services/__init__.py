from .analysis_service import CancellationToken, FoodImageAnalyzer

__all__ = ['CancellationToken', 'FoodImageAnalyzer']
