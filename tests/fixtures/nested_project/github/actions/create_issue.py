from models import GithubIssue, GithubIssueInput


async def run_action(nango, input: GithubIssueInput) -> GithubIssue:
    response = await nango.post(
        endpoint="/repos/nangohq/nango/issues",
        data={"title": input["title"], "body": input.get("body", "")},
        retries=2,
    )
    return response.json()
