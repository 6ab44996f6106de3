# -*- coding: utf-8 -*-
"""
Content Engine: генерация SEO-статей, импорт изображений и публикация в CMS.
"""

__version__ = "1.0.0"
