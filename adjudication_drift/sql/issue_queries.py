"""
Issue store queries.

Issues live in two places:
- ``document_issues`` rows, joined to their ``documents`` for date and metadata
- the ``issues`` array embedded in ``case_documents.structured_data``

Date bounds are pushed down to PostgreSQL for the first store. Embedded issues
carry their own dates inside the JSON, so the caller filters them after
expansion.

All queries use positional asyncpg parameters; optional bounds are passed as
NULL and short-circuited in SQL.
"""


# =============================================================================
# document_issues
# =============================================================================

# $1 date_from (inclusive, nullable), $2 date_to (exclusive, nullable),
# $3 include_undated (rows with no document date or created_at pass the bounds)
DOCUMENT_ISSUES_QUERY: str = """
    SELECT
        di.id::text AS id,
        di.taxonomy_code,
        di.severity,
        di.prong_affected,
        di.created_at,
        d.id::text AS document_id,
        d.outcome_type,
        d.visa_category,
        d.document_date,
        d.service_center,
        d.industry
    FROM document_issues di
    LEFT JOIN documents d ON d.id = di.document_id
    WHERE ($3::boolean AND COALESCE(d.document_date::timestamptz, di.created_at) IS NULL)
       OR (    ($1::timestamptz IS NULL
                OR COALESCE(d.document_date::timestamptz, di.created_at) >= $1)
           AND ($2::timestamptz IS NULL
                OR COALESCE(d.document_date::timestamptz, di.created_at) < $2))
    ORDER BY di.created_at DESC
"""


# =============================================================================
# case_documents.structured_data
# =============================================================================

CASE_DOCUMENTS_QUERY: str = """
    SELECT
        cd.id::text AS document_id,
        cd.doc_type,
        cd.structured_data,
        cd.created_at,
        vc.visa_category,
        vc.industry
    FROM case_documents cd
    LEFT JOIN visa_cases vc ON vc.id = cd.case_id
    WHERE cd.structured_data IS NOT NULL
"""
