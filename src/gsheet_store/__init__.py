"""
Google Sheets remote-write store.

Buffers timeseries samples and delivers them in rate-limited batches to a
capacity-limited spreadsheet, refreshing its allow-list policy from the sheet
and evicting aged rows.

Usage:
    from gsheet_store.config import get_settings, build_client
    from gsheet_store.coordinator import BatchEngine, SampleIntake

    client = build_client(get_settings())
    engine = BatchEngine.from_settings(client)
    await engine.start()
    await SampleIntake(engine).put(samples)
"""
