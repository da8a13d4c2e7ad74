async def fetch_data(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues", retry_on=[429])
    await nango.batch_save(response.json(), "GithubIssue")
