"""Package feeds.

- feed.py: FeedClient interface and create_feed()
- nuget/: NuGet V3 / V2 HTTP feeds
- local.py: directory feeds of .nupkg files
- nupkg.py: nuspec parsing and archive extraction
"""
