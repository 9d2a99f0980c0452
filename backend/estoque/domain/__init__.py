# Domain layer - entities and repository interfaces, no framework imports.
