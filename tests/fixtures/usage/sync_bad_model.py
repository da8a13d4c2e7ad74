async def fetch_data(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues")
    await nango.batch_save(response.json(), "GithubIssues")
