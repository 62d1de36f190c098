"""Resolution and transactional install engine.

Modules:
- models.py: candidates, repositories, options and results
- errors.py: install error hierarchy
- paths.py: scope -> filesystem roots
- inventory.py: snapshot of locally installed packages
- tags.py: capability parsing from feed tags
- dependencies.py: dependency graph expansion
- license.py / clobber.py / descriptor.py: staging validations and descriptor
- promotion.py: atomic moves into the permanent store
- staging.py: per-repository staging and commit
- selector.py: ranked repository fallback
- host.py / cancellation.py: injected prompts, progress and cancellation
"""
