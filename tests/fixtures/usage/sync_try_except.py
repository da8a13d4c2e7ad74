async def fetch_data(nango):
    try:
        nango.get(endpoint="/repos/nangohq/nango/issues")
    except Exception as exc:
        await nango.log(f"could not start the request: {exc}")
