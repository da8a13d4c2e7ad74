async def fetch_data(nango):
    response = await nango.get(endpoint="/repos/nangohq/nango/issues")
    records = [{"id": issue["id"]} for issue in response.json()]
    await nango.batch_save(records, "GithubIssue")
    return records
