from .csv_io import (
    RECOMMENDATION_COLUMNS,
    RESULT_COLUMNS,
    read_recommendations_csv,
    write_recommendations_csv,
    write_purchase_results_csv,
)

__all__ = [
    'RECOMMENDATION_COLUMNS', 'RESULT_COLUMNS',
    'read_recommendations_csv', 'write_recommendations_csv', 'write_purchase_results_csv',
]
