async def fetch_data(nango)
    await nango.get(endpoint="/repos/nangohq/nango/issues")
