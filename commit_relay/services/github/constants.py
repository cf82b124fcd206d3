"""Constants for GitHub service."""

GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"

# GitHub rejects App JWTs that live longer than 10 minutes
APP_JWT_LIFETIME_SECONDS = 600
# Backdate iat to absorb clock drift between us and GitHub
APP_JWT_CLOCK_SKEW_SECONDS = 60

# Treat installation tokens as expired this long before GitHub does
INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS = 60

CONTRIBUTIONS_QUERY = """
query($username: String!) {
    user(login: $username) {
        contributionsCollection {
            contributionCalendar {
                totalContributions
                weeks {
                    contributionDays {
                        date
                        contributionCount
                        color
                    }
                }
            }
        }
    }
}
"""
