"""AniList GraphQL client used for airing lookups, search and media details."""
