"""Version parsing, ranges and resolution.

Modules:
- version.py: NuGetVersion (parse, ordering, folder names)
- ranges.py: VersionRange interval notation
- models.py / parser.py: constraints and package requests
- resolver.py: VersionResolver (maximum satisfying candidate)
- cache.py: TTL cache used by feed clients
"""
