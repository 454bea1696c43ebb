"""Localized report headings and labels.

HEADINGS maps every section and subsection key to the heading variants the
analysis text may use, per language. The first variant of each language is
the canonical heading: the analyzer asks the model to use it and the
renderers print it as the section title.
"""

import re

LANGUAGES = ("en", "pt", "es", "fr", "de")
DEFAULT_LANGUAGE = "en"

HEADINGS: dict[str, dict[str, list[str]]] = {
    "executive_summary": {
        "en": ["Executive Summary", "Summary"],
        "pt": ["Resumo Executivo"],
        "es": ["Resumen Ejecutivo"],
        "fr": ["Résumé Exécutif", "Synthèse"],
        "de": ["Zusammenfassung"],
    },
    "market_overview": {
        "en": ["Market Overview"],
        "pt": ["Visão Geral do Mercado"],
        "es": ["Visión General del Mercado"],
        "fr": ["Aperçu du Marché"],
        "de": ["Marktübersicht"],
    },
    "key_competitors": {
        "en": ["Key Competitors"],
        "pt": ["Principais Concorrentes"],
        "es": ["Competidores Clave"],
        "fr": ["Principaux Concurrents"],
        "de": ["Wichtigste Wettbewerber"],
    },
    "review_analysis": {
        "en": ["Review Theme Analysis", "Review Analysis"],
        "pt": ["Análise de Temas de Avaliação"],
        "es": ["Análisis de Temas de Reseñas"],
        "fr": ["Analyse des Thèmes des Avis"],
        "de": ["Analyse der Bewertungsthemen"],
    },
    "market_gaps": {
        "en": ["Market Gaps"],
        "pt": ["Lacunas de Mercado"],
        "es": ["Brechas de Mercado"],
        "fr": ["Lacunes du Marché"],
        "de": ["Marktlücken", "Markt-Lücken"],
    },
    "swot": {
        "en": ["SWOT Analysis", "SWOT"],
        "pt": ["Análise SWOT"],
        "es": ["Análisis SWOT", "Análisis FODA"],
        "fr": ["Analyse SWOT"],
        "de": ["SWOT-Analyse"],
    },
    "strengths": {
        "en": ["Strengths"],
        "pt": ["Pontos Fortes", "Forças"],
        "es": ["Fortalezas"],
        "fr": ["Forces"],
        "de": ["Stärken"],
    },
    "weaknesses": {
        "en": ["Weaknesses"],
        "pt": ["Pontos Fracos", "Fraquezas"],
        "es": ["Debilidades"],
        "fr": ["Faiblesses"],
        "de": ["Schwächen"],
    },
    "opportunities": {
        "en": ["Opportunities"],
        "pt": ["Oportunidades"],
        "es": ["Oportunidades"],
        "fr": ["Opportunités"],
        "de": ["Chancen"],
    },
    "threats": {
        "en": ["Threats"],
        "pt": ["Ameaças"],
        "es": ["Amenazas"],
        "fr": ["Menaces"],
        "de": ["Bedrohungen", "Risiken"],
    },
    "market_trends": {
        "en": ["Market Trends"],
        "pt": ["Tendências de Mercado"],
        "es": ["Tendencias del Mercado"],
        "fr": ["Tendances du Marché"],
        "de": ["Markttrends"],
    },
    "target_audience": {
        "en": ["Target Audience Persona", "Target Audience"],
        "pt": ["Persona do Público-Alvo", "Público-Alvo"],
        "es": ["Persona del Público Objetivo", "Público Objetivo"],
        "fr": ["Persona du Public Cible", "Public Cible"],
        "de": ["Zielgruppen-Persona", "Zielgruppe"],
    },
    "demographics": {
        "en": ["Demographics"],
        "pt": ["Demografia"],
        "es": ["Demografía"],
        "fr": ["Démographie"],
        "de": ["Demografie"],
    },
    "psychographics": {
        "en": ["Psychographics"],
        "pt": ["Psicografia"],
        "es": ["Psicografía"],
        "fr": ["Psychographie"],
        "de": ["Psychografie"],
    },
    "pain_points": {
        "en": ["Pain Points & Needs", "Pain Points"],
        "pt": ["Dores e Necessidades", "Pontos de Dor e Necessidades"],
        "es": ["Puntos de Dolor y Necesidades"],
        "fr": ["Points de Douleur et Besoins"],
        "de": ["Schmerzpunkte und Bedürfnisse"],
    },
    "marketing_strategy": {
        "en": ["Marketing Strategy"],
        "pt": ["Estratégia de Marketing"],
        "es": ["Estrategia de Marketing"],
        "fr": ["Stratégie Marketing"],
        "de": ["Marketingstrategie"],
    },
    "primary_channels": {
        "en": ["Primary Channels"],
        "pt": ["Canais Principais"],
        "es": ["Canales Principales"],
        "fr": ["Canaux Principaux"],
        "de": ["Hauptkanäle"],
    },
    "content_ideas": {
        "en": ["Content Ideas"],
        "pt": ["Ideias de Conteúdo"],
        "es": ["Ideas de Contenido"],
        "fr": ["Idées de Contenu"],
        "de": ["Inhaltsideen"],
    },
    "promotional_tactics": {
        "en": ["Promotional Tactics"],
        "pt": ["Táticas Promocionais"],
        "es": ["Tácticas Promocionales"],
        "fr": ["Tactiques Promotionnelles"],
        "de": ["Werbetaktiken"],
    },
    "customer_sentiment": {
        "en": ["Customer Sentiment & Review Insights", "Customer Sentiment"],
        "pt": ["Sentimento do Cliente & Insights de Avaliações", "Sentimento do Cliente"],
        "es": ["Sentimiento del Cliente e Insights de Reseñas", "Sentimiento del Cliente"],
        "fr": ["Sentiment Client & Analyse des Avis", "Sentiment Client"],
        "de": ["Kundenstimmung & Bewertungseinblicke", "Kundenstimmung"],
    },
    "common_praises": {
        "en": ["Common Praises"],
        "pt": ["Elogios Comuns"],
        "es": ["Elogios Comunes"],
        "fr": ["Éloges Courants"],
        "de": ["Häufiges Lob"],
    },
    "recurring_complaints": {
        "en": ["Recurring Complaints"],
        "pt": ["Reclamações Recorrentes"],
        "es": ["Quejas Recurrentes"],
        "fr": ["Plaintes Récurrentes"],
        "de": ["Wiederkehrende Beschwerden"],
    },
    "unmet_needs": {
        "en": ["Unmet Needs"],
        "pt": ["Necessidades Não Atendidas"],
        "es": ["Necesidades Insatisfechas"],
        "fr": ["Besoins Non Satisfaits"],
        "de": ["Unerfüllte Bedürfnisse"],
    },
    "recommendations": {
        "en": ["Practical Recommendations", "Strategic Recommendations", "Recommendations"],
        "pt": ["Recomendações Práticas", "Recomendações Estratégicas"],
        "es": ["Recomendaciones Prácticas", "Recomendaciones Estratégicas"],
        "fr": ["Recommandations Pratiques", "Recommandations Stratégiques"],
        "de": ["Praktische Empfehlungen", "Strategische Empfehlungen"],
    },
    "differentiation": {
        "en": ["Differentiation Strategies"],
        "pt": ["Estratégias de Diferenciação"],
        "es": ["Estrategias de Diferenciación"],
        "fr": ["Stratégies de Différenciation"],
        "de": ["Differenzierungsstrategien"],
    },
}

LABELS: dict[str, dict[str, str]] = {
    "en": {
        "title": "Competitor Analysis Report",
        "generated": "Generated",
        "competitors_found": "Competitors Found",
        "avg_rating": "Avg. Rating",
        "total_reviews": "Total Reviews",
        "nearby_competitors": "Nearby Competitors",
        "no_competitors": "No competitors found in the nearby area.",
        "reviews": "reviews",
        "detailed_analysis": "Detailed AI Analysis",
    },
    "pt": {
        "title": "Relatório de Análise da Concorrência",
        "generated": "Gerado",
        "competitors_found": "Concorrentes Encontrados",
        "avg_rating": "Avaliação Média",
        "total_reviews": "Total de Avaliações",
        "nearby_competitors": "Concorrentes Próximos",
        "no_competitors": "Nenhum concorrente encontrado nas proximidades.",
        "reviews": "avaliações",
        "detailed_analysis": "Análise Detalhada por IA",
    },
    "es": {
        "title": "Informe de Análisis de la Competencia",
        "generated": "Generado",
        "competitors_found": "Competidores Encontrados",
        "avg_rating": "Valoración Media",
        "total_reviews": "Reseñas Totales",
        "nearby_competitors": "Competidores Cercanos",
        "no_competitors": "No se encontraron competidores en la zona.",
        "reviews": "reseñas",
        "detailed_analysis": "Análisis Detallado con IA",
    },
    "fr": {
        "title": "Rapport d'Analyse Concurrentielle",
        "generated": "Généré",
        "competitors_found": "Concurrents Trouvés",
        "avg_rating": "Note Moyenne",
        "total_reviews": "Total des Avis",
        "nearby_competitors": "Concurrents à Proximité",
        "no_competitors": "Aucun concurrent trouvé à proximité.",
        "reviews": "avis",
        "detailed_analysis": "Analyse Détaillée par IA",
    },
    "de": {
        "title": "Wettbewerbsanalyse-Bericht",
        "generated": "Erstellt",
        "competitors_found": "Gefundene Wettbewerber",
        "avg_rating": "Ø Bewertung",
        "total_reviews": "Bewertungen Gesamt",
        "nearby_competitors": "Wettbewerber in der Nähe",
        "no_competitors": "Keine Wettbewerber in der Umgebung gefunden.",
        "reviews": "Bewertungen",
        "detailed_analysis": "Detaillierte KI-Analyse",
    },
}


def normalize_language(language: str | None) -> str:
    """'pt-PT' -> 'pt'; anything unsupported falls back to English."""
    base = (language or DEFAULT_LANGUAGE).split("-")[0].split("_")[0].lower()
    return base if base in LANGUAGES else DEFAULT_LANGUAGE


def heading(key: str, language: str | None = None) -> str:
    """Canonical heading for a section key in the given language."""
    return HEADINGS[key][normalize_language(language)][0]


def label(key: str, language: str | None = None) -> str:
    return LABELS[normalize_language(language)][key]


def _variant_pattern(variant: str) -> str:
    # Spaces and hyphens are interchangeable; "&" may be spelled out
    words = []
    for word in re.split(r"[\s\-]+", variant):
        words.append(r"(?:&|and|e|y|et|und)" if word == "&" else re.escape(word))
    return r"[\s\-]+".join(words)


def _compile(key: str) -> re.Pattern:
    variants = {v for variants in HEADINGS[key].values() for v in variants}
    # Longest first so "Target Audience Persona" wins over "Target Audience"
    ordered = sorted(variants, key=len, reverse=True)
    alternation = "|".join(_variant_pattern(v) for v in ordered)
    return re.compile(rf"^(?:{alternation})$", re.IGNORECASE)


HEADING_PATTERNS: dict[str, re.Pattern] = {key: _compile(key) for key in HEADINGS}
