# store.py
# Database access for the reconciler and the read endpoints.
import functools

from sqlalchemy.exc import SQLAlchemyError

from errors import StoreError
from models import GlobalReading, Plot, PlotReading


def _store_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (SQLAlchemyError, OverflowError) as e:
            raise StoreError("%s failed: %s" % (method.__name__, e)) from e
    return wrapper


class SqlAlchemyStore:
    """Reconciler store on top of a (scoped) SQLAlchemy session.

    Nothing here commits on its own; the caller decides the transaction
    boundary through commit() / rollback().
    """

    def __init__(self, session):
        self.session = session

    # ----------------------
    # Global readings
    # ----------------------
    @_store_errors
    def latest_global_reading(self):
        return (
            self.session.query(GlobalReading)
            .order_by(GlobalReading.recorded_at.desc(), GlobalReading.id.desc())
            .first()
        )

    @_store_errors
    def insert_global_reading(self, values):
        row = GlobalReading(
            humidity=values.humidity,
            temperature=values.temperature,
            rainfall=values.rainfall,
            sunlight=values.sunlight,
        )
        self.session.add(row)
        self.session.flush()
        return row

    # ----------------------
    # Plots
    # ----------------------
    @_store_errors
    def find_plot(self, plot_id):
        return self.session.get(Plot, plot_id)

    @_store_errors
    def insert_plot(self, record):
        plot = Plot(id=record.id, is_deleted=False)
        _copy_plot_fields(plot, record)
        self.session.add(plot)
        self.session.flush()
        return plot

    @_store_errors
    def update_plot(self, record):
        plot = self.session.get(Plot, record.id)
        if plot is None:
            raise StoreError("update_plot failed: plot %d does not exist" % record.id)
        _copy_plot_fields(plot, record)
        plot.is_deleted = False
        self.session.flush()
        return plot

    @_store_errors
    def active_plot_ids(self):
        rows = self.session.query(Plot.id).filter(Plot.is_deleted.is_(False)).all()
        return {row[0] for row in rows}

    @_store_errors
    def mark_plot_deleted(self, plot_id):
        plot = self.session.get(Plot, plot_id)
        if plot is not None:
            plot.is_deleted = True
            self.session.flush()

    # ----------------------
    # Plot readings
    # ----------------------
    @_store_errors
    def latest_plot_reading(self, plot_id):
        return (
            self.session.query(PlotReading)
            .filter(PlotReading.plot_id == plot_id)
            .order_by(PlotReading.recorded_at.desc(), PlotReading.id.desc())
            .first()
        )

    @_store_errors
    def insert_plot_reading(self, plot_id, values):
        row = PlotReading(
            plot_id=plot_id,
            humidity=values.humidity,
            temperature=values.temperature,
            rainfall=values.rainfall,
            sunlight=values.sunlight,
        )
        self.session.add(row)
        self.session.flush()
        return row

    # ----------------------
    # Transaction
    # ----------------------
    @_store_errors
    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    # ----------------------
    # Read side (HTTP endpoints)
    # ----------------------
    @_store_errors
    def active_plots(self):
        return self.session.query(Plot).filter(Plot.is_deleted.is_(False)).order_by(Plot.id).all()

    @_store_errors
    def deleted_plots(self):
        return self.session.query(Plot).filter(Plot.is_deleted.is_(True)).order_by(Plot.id).all()

    @_store_errors
    def plot_history(self, plot_id):
        return (
            self.session.query(PlotReading)
            .filter(PlotReading.plot_id == plot_id)
            .order_by(PlotReading.recorded_at.asc(), PlotReading.id.asc())
            .all()
        )

    @_store_errors
    def global_history(self):
        return (
            self.session.query(GlobalReading)
            .order_by(GlobalReading.recorded_at.asc(), GlobalReading.id.asc())
            .all()
        )

    @_store_errors
    def dump(self):
        return {
            "parcelas": [p.to_dict() for p in self.session.query(Plot).order_by(Plot.id).all()],
            "historico": [r.to_dict() for r in self.session.query(PlotReading).order_by(PlotReading.id).all()],
            "globales": [g.to_dict() for g in self.session.query(GlobalReading).order_by(GlobalReading.id).all()],
        }


def _copy_plot_fields(plot, record):
    plot.name = record.name
    plot.location = record.location
    plot.responsible_party = record.responsible_party
    plot.crop_type = record.crop_type
    plot.last_irrigated = record.last_irrigated
    plot.latitude = record.latitude
    plot.longitude = record.longitude
