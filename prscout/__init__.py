"""
Prscout - List the pull requests in a repository that concern you.

A CLI tool that:
1. Lists pull requests in a GitHub repository
2. Keeps the ones that request your (or your team's) review, assign you,
   or mention you
3. Optionally scans inline review comments for mentions and comments by you
4. Shows each PR with its added/removed line counts, most recent first

Usage:
    prscout -r owner/repo           # PRs concerning you in owner/repo
    prscout -r repo                 # Same, in your own repository
    prscout -r owner/repo -c        # Also scan review comments
"""

__version__ = "0.1.0"
__author__ = "Prscout"
