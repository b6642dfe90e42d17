"""Memories: markdown files with YAML frontmatter, one per slug.

Layout:
    <store root>/
    ├── index.yaml                     # root index: top-level categories
    └── project/
        ├── index.yaml                 # memories + subcategories of "project"
        └── conventions.md             # memory "project/conventions"
"""
