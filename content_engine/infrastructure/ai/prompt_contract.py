# -*- coding: utf-8 -*-
"""
Промпт-контракт для генерации статьи.

Пользовательское сообщение содержит JSON: контекст, схему ответа и
обязательные правила для URL изображений (allow-list из настроек).
"""

import json
from typing import Dict, List, Sequence

from content_engine.domain.value_objects.generation import GenerationContext

SYSTEM_PROMPT = (
    "You are a senior SEO copywriter and content strategist. "
    "Write accurate, trustworthy, long-form content optimized for discoverability, not virality."
)

OUTPUT_CONTRACT = {
    "title": "string",
    "title_options": "string[]",
    "content": "html string with H2/H3 headings",
    "excerpt": "short plain text summary",
    "faq": "array of { q, a }",
    "cta": "html string",
    "internal_links": "array of { anchor, target_hint }",
    "external_links": "array of { anchor, url }",
    "featured_image_url": "string (url or empty)",
    "featured_image_alt": "string",
    "og_image_url": "string (url or empty)",
    "og_image_alt": "string",
    "inline_images": "array of { url, alt, caption?, placement_hint? }",
    "meta_title": "string",
    "meta_description": "string",
    "og_title": "string",
    "og_description": "string",
    "primary_keyword": "string",
    "schema_jsonld": "Article + FAQPage JSON-LD",
}

IMAGE_EXTENSIONS_TEXT = ".jpg, .jpeg, .png, or .webp"


def image_rules(allowed_hosts: Sequence[str]) -> Dict[str, List[str]]:
    hosts = ", ".join(allowed_hosts) if allowed_hosts else "(none configured)"
    return {
        "return_fields": ["featured_image_url", "featured_image_alt", "og_image_url", "inline_images"],
        "hard_constraints": [
            "1) URLs must be HTTPS.",
            f"2) Host must be one of: {hosts}",
            f"3) URL path must end with: {IMAGE_EXTENSIONS_TEXT}",
            "4) No placeholder or example domains.",
            "5) No HTML pages or preview links.",
            "6) If no compliant image exists, return empty strings for featured_image_url "
            "and og_image_url, and empty array for inline_images.",
        ],
        "validation_before_returning": [
            'If featured_image_url fails any rule, set it to "".',
            'If og_image_url fails any rule, set it to "".',
            "Remove any inline_images entries whose url fails rules.",
        ],
    }


def build_messages(context: GenerationContext, allowed_hosts: Sequence[str]) -> List[Dict[str, str]]:
    """Сообщения chat/completions: system + user с JSON-контрактом."""
    contract = context.to_dict()
    contract["output_contract"] = OUTPUT_CONTRACT
    contract["image_output_rules_mandatory"] = image_rules(allowed_hosts)
    contract["instructions"] = (
        "Return only valid JSON that conforms to this contract. "
        "Do not include markdown fences or commentary. Write helpful, accurate content. "
        "Use natural anchors for internal/external links."
    )

    user_prompt = (
        "Generate a long-form article according to this JSON contract and context: "
        + json.dumps(contract, ensure_ascii=False)
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
