async def fetch_issues(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues")
    await nango.batch_save(response.json(), "GithubIssue")
