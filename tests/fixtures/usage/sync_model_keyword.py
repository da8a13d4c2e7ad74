async def fetch_data(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues")
    await nango.batch_save(response.json(), model="GithubIssue")
    await nango.batch_delete([{"id": 1}], model="GithubIssue")
