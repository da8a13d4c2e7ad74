async def fetch_data(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues")
    issues = response.json()
    if not issues:
        return
    await nango.batch_save([{"id": issue["id"]} for issue in issues], "GithubIssue")
    return None
