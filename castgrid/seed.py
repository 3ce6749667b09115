import argparse
from sqlalchemy.orm import Session
from castgrid.db import SessionLocal, Base, engine
from castgrid.models.device import Device
from castgrid.models.grid import Grid
from castgrid.models.media_box import MediaBox, MediaBoxItem
from castgrid.models.media_item import MediaItem
from castgrid.schemas.device import DeviceRecord, GridRecord, default_grid_id
from castgrid.schemas.media import MediaBoxRecord, MediaItemRecord
from castgrid.services.json_store import JsonCatalogStore

DEMO_DEVICE_ID = "tv_001"
DEMO_BOX_ID = "demo_box_1"
DEMO_MEDIA = [
    {
        "mediaId": "demo_media_1",
        "type": "video",
        "filename": "A_welcome_video.mp4",
        "url": "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4",
        "duration": 30,
    },
    {
        "mediaId": "demo_media_2",
        "type": "image",
        "filename": "B_menu_image.jpg",
        "url": "https://picsum.photos/1920/1080?random=1",
        "duration": 5,
    },
    {
        "mediaId": "demo_media_3",
        "type": "image",
        "filename": "C_promotion_banner.png",
        "url": "https://picsum.photos/1920/1080?random=2",
        "duration": 8,
    },
]


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        if db.get(Device, DEMO_DEVICE_ID):
            return
        db.add(Device(id=DEMO_DEVICE_ID, location="Demo Lobby"))
        for row in DEMO_MEDIA:
            db.add(
                MediaItem(
                    id=row["mediaId"],
                    type=row["type"],
                    filename=row["filename"],
                    url=row["url"],
                    duration=row["duration"],
                    download_status="available",
                )
            )
        db.add(MediaBox(id=DEMO_BOX_ID, name="Demo Content Box"))
        for order, row in enumerate(DEMO_MEDIA, start=1):
            db.add(MediaBoxItem(media_box_id=DEMO_BOX_ID, media_id=row["mediaId"], order=order))
        for position in (1, 2):
            db.add(
                Grid(
                    id=default_grid_id(DEMO_DEVICE_ID, position),
                    device_id=DEMO_DEVICE_ID,
                    position=position,
                    media_box_id=DEMO_BOX_ID,
                )
            )
        db.commit()
    finally:
        db.close()


def seed_json(data_dir: str) -> None:
    store = JsonCatalogStore(data_dir)
    if store.get_device(DEMO_DEVICE_ID):
        return
    for row in DEMO_MEDIA:
        store.save_media_item(MediaItemRecord.model_validate({**row, "downloadStatus": "available"}))
    store.save_media_box(
        MediaBoxRecord(
            media_box_id=DEMO_BOX_ID,
            name="Demo Content Box",
            media_items=[row["mediaId"] for row in DEMO_MEDIA],
        )
    )
    grid_ids = []
    for position in (1, 2):
        grid = GridRecord(
            grid_id=default_grid_id(DEMO_DEVICE_ID, position),
            device_id=DEMO_DEVICE_ID,
            position=position,
            media_box_id=DEMO_BOX_ID,
        )
        store.save_grid(grid)
        grid_ids.append(grid.grid_id)
    store.save_device(DeviceRecord(device_id=DEMO_DEVICE_ID, location="Demo Lobby", grids=grid_ids))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed CastGrid demo data")
    parser.add_argument("--json-dir", help="write JSON store files here instead of the database")
    args = parser.parse_args()
    if args.json_dir:
        seed_json(args.json_dir)
    else:
        seed()
